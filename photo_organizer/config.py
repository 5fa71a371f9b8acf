"""Process-wide settings, read once from the environment at import time."""
import os

from dotenv import load_dotenv

# Load .env from the working directory if there is one
load_dotenv()

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "3000"))

MAX_FILES = int(os.getenv("MAX_FILES", "200"))
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(25 * 1024 * 1024)))

# Parent directory for per-request workspaces; None means the system temp dir
WORKSPACE_ROOT = os.getenv("WORKSPACE_ROOT") or None

ZIP_COMPRESSLEVEL = int(os.getenv("ZIP_COMPRESSLEVEL", "9"))
ARCHIVE_CHUNK_SIZE = int(os.getenv("ARCHIVE_CHUNK_SIZE", str(64 * 1024)))
EXTRACT_WORKERS = int(os.getenv("EXTRACT_WORKERS", "1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

ARCHIVE_NAME = "organized-photos.zip"
