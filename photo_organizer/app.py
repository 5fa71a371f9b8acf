from flask import Flask, Response, current_app, render_template, request
from werkzeug.exceptions import RequestEntityTooLarge
import logging

from photo_organizer import config
from photo_organizer.archiver import ArchiveBuilder
from photo_organizer.errors import EmptyBatchError, UploadLimitError
from photo_organizer.services.session import Session
from photo_organizer.uploads import collect_uploads, parse_flag

app = Flask(__name__)
app.config.update(
    MAX_FILES=config.MAX_FILES,
    MAX_FILE_SIZE=config.MAX_FILE_SIZE,
    # whole-request ceiling; per-file limits are checked in collect_uploads
    MAX_CONTENT_LENGTH=config.MAX_FILES * config.MAX_FILE_SIZE + 1024 * 1024,
    WORKSPACE_ROOT=config.WORKSPACE_ROOT,
    ZIP_COMPRESSLEVEL=config.ZIP_COMPRESSLEVEL,
    ARCHIVE_CHUNK_SIZE=config.ARCHIVE_CHUNK_SIZE,
    EXTRACT_WORKERS=config.EXTRACT_WORKERS,
)


def _relay(first: bytes, body):
    try:
        if first:
            yield first
        yield from body
    finally:
        body.close()


@app.route("/", methods=["GET"])
def index():
    return render_template("index.html", max_files=current_app.config["MAX_FILES"])


@app.route("/upload", methods=["POST"])
def upload():
    cfg = current_app.config
    try:
        items = collect_uploads(request.files.getlist("photos"), cfg["MAX_FILES"], cfg["MAX_FILE_SIZE"])
    except EmptyBatchError:
        return "No files uploaded.", 400
    except UploadLimitError as e:
        return str(e), 413
    group_by_gps = parse_flag(request.form.get("groupByGps"))

    session = Session(workspace_root=cfg["WORKSPACE_ROOT"])
    builder = ArchiveBuilder(compresslevel=cfg["ZIP_COMPRESSLEVEL"], chunk_size=cfg["ARCHIVE_CHUNK_SIZE"])
    try:
        session.populate(items, group_by_gps, workers=cfg["EXTRACT_WORKERS"])
        body = session.stream_archive(builder)
        # pull the first chunk here so failures before any byte is sent become a 500
        first = next(body, b"")
    except Exception as e:
        logging.exception("Session %s failed while processing %d files", session.session_id, len(items))
        session.fail(e)
        session.release()
        return "Server error while processing files.", 500

    response = Response(_relay(first, body), mimetype="application/zip")
    response.headers["Content-Disposition"] = f'attachment; filename="{config.ARCHIVE_NAME}"'
    response.call_on_close(session.close)
    return response


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    return "Upload too large.", 413

