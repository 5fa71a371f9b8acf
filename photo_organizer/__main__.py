"""Run the organizer server: ``python -m photo_organizer``."""
import logging

from photo_organizer import config
from photo_organizer.app import app


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    logging.info("Photo organizer running at http://%s:%d", config.HOST, config.PORT)
    app.run(host=config.HOST, port=config.PORT, threaded=True)


if __name__ == "__main__":
    main()
