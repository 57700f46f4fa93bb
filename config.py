import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

MB = 1024 * 1024


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    """
    Application settings, read once from the environment (or a .env file).
    Flask picks up every UPPERCASE attribute via app.config.from_object.
    """

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-insecure-secret-key")

    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    # Downloads are only ever served from inside this folder
    TMP_FOLDER = os.environ.get("TMP_FOLDER", os.path.join(BASE_DIR, "tmp"))

    # S3-compatible object store for shared builds and pending feedback
    BLOB_BUCKET = os.environ.get("BLOB_BUCKET", "toolbench")
    BLOB_ENDPOINT_URL = os.environ.get("BLOB_ENDPOINT_URL")
    BLOB_ACCESS_KEY_ID = os.environ.get("BLOB_ACCESS_KEY_ID")
    BLOB_SECRET_ACCESS_KEY = os.environ.get("BLOB_SECRET_ACCESS_KEY")
    BLOB_REGION = os.environ.get("BLOB_REGION", "us-east-1")
    # Served through GET /blobs/<key> unless pointed at a public bucket URL
    BLOB_PUBLIC_URL = os.environ.get("BLOB_PUBLIC_URL", "/blobs")

    MAX_UPLOAD_BYTES = _int_env("MAX_UPLOAD_BYTES", 10 * MB)
    MAX_CONTENT_LENGTH = _int_env("MAX_CONTENT_LENGTH", 50 * MB)
    CLEANUP_DELAY_SECONDS = _int_env("CLEANUP_DELAY_SECONDS", 300)

    CRON_SECRET = os.environ.get("CRON_SECRET")
    GOOGLE_CLIENT_EMAIL = os.environ.get("GOOGLE_CLIENT_EMAIL")
    GOOGLE_PRIVATE_KEY = os.environ.get("GOOGLE_PRIVATE_KEY")
    GOOGLE_SHEETS_ID = os.environ.get("GOOGLE_SHEETS_ID")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
