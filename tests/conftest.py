"""Shared fixtures: JPEG bytes with chosen EXIF tags, and a Flask test client."""
import io

import piexif
import pytest
from PIL import Image

from photo_organizer.app import app as flask_app


def _to_dms(value):
    deg = int(value)
    rem = (value - deg) * 60
    minute = int(rem)
    sec = round((rem - minute) * 60 * 1000)
    return ((deg, 1), (minute, 1), (sec, 1000))


def make_jpeg(date_original=None, create_date=None, modify_date=None, gps=None, color="red"):
    """Return a tiny JPEG carrying only the EXIF tags asked for."""
    zeroth, exif_ifd, gps_ifd = {}, {}, {}
    if modify_date:
        zeroth[piexif.ImageIFD.DateTime] = modify_date.encode()
    if date_original:
        exif_ifd[piexif.ExifIFD.DateTimeOriginal] = date_original.encode()
    if create_date:
        exif_ifd[piexif.ExifIFD.DateTimeDigitized] = create_date.encode()
    if gps:
        lat, lon = gps
        gps_ifd[piexif.GPSIFD.GPSLatitudeRef] = b"N" if lat >= 0 else b"S"
        gps_ifd[piexif.GPSIFD.GPSLatitude] = _to_dms(abs(lat))
        gps_ifd[piexif.GPSIFD.GPSLongitudeRef] = b"E" if lon >= 0 else b"W"
        gps_ifd[piexif.GPSIFD.GPSLongitude] = _to_dms(abs(lon))

    buf = io.BytesIO()
    img = Image.new("RGB", (8, 8), color)
    if zeroth or exif_ifd or gps_ifd:
        exif = piexif.dump({"0th": zeroth, "Exif": exif_ifd, "GPS": gps_ifd, "1st": {}, "thumbnail": None})
        img.save(buf, format="JPEG", exif=exif)
    else:
        img.save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def jpeg():
    return make_jpeg


@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def client(workspace_root):
    saved = dict(flask_app.config)
    flask_app.config.update(TESTING=True, WORKSPACE_ROOT=str(workspace_root))
    with flask_app.test_client() as c:
        yield c
    flask_app.config.clear()
    flask_app.config.update(saved)
