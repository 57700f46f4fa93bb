import io
import logging
import os
import threading
import uuid
import zipfile
from typing import Iterable, List, Optional, Tuple

from werkzeug.datastructures import FileStorage, MultiDict
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class UploadError(Exception):
    """Raised when an uploaded file is missing, empty or too large."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def size_limit_message(max_bytes: int) -> str:
    if max_bytes % MB == 0:
        return f"File size exceeds {max_bytes // MB}MB limit"
    return f"File size exceeds {max_bytes} byte limit"


def read_upload(storage: FileStorage, max_bytes: int) -> bytes:
    """
    Read an uploaded file fully into memory, refusing anything over max_bytes.
    Reads at most max_bytes + 1 so an oversized body is never buffered whole.
    """
    data = storage.stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise UploadError(size_limit_message(max_bytes), status_code=413)
    if not data:
        raise UploadError(f"Uploaded file '{storage.filename}' is empty")
    return data


def save_upload(storage: FileStorage, folder: str, max_bytes: int) -> str:
    data = read_upload(storage, max_bytes)

    os.makedirs(folder, exist_ok=True)
    filename = secure_filename(f"{uuid.uuid4().hex}_{storage.filename or 'upload'}")
    path = os.path.join(folder, filename)
    with open(path, "wb") as f:
        f.write(data)

    logger.info("Saved upload %s (%d bytes)", path, len(data))
    return path


def collect_uploads(files: MultiDict, prefix: str = "file") -> List[FileStorage]:
    """
    Gather uploads named file0..fileN, in index order.
    Falls back to a plain (possibly repeated) "file" field.
    """
    uploads: List[FileStorage] = []

    index = 0
    while f"{prefix}{index}" in files:
        f = files[f"{prefix}{index}"]
        if f and (f.filename or "").strip():
            uploads.append(f)
        index += 1

    if not uploads and prefix in files:
        for f in files.getlist(prefix):
            if f and (f.filename or "").strip():
                uploads.append(f)

    return uploads


def remove_file(path: str) -> None:
    try:
        os.remove(path)
        logger.info("Cleaned up temporary file: %s", path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Cleanup failed for %s", path)


def schedule_cleanup(
    paths: Iterable[str],
    delay_seconds: float,
    folders: Iterable[str] = ()
) -> threading.Timer:
    """
    One-shot delayed deletion. No cancellation, no retry. Folders are
    removed afterwards only if they ended up empty.
    """
    targets = list(paths)
    dirs = list(folders)

    def _cleanup():
        for p in targets:
            remove_file(p)
        for d in dirs:
            try:
                os.rmdir(d)
            except FileNotFoundError:
                pass
            except OSError:
                logger.warning("Left non-empty folder in place: %s", d)

    timer = threading.Timer(delay_seconds, _cleanup)
    timer.daemon = True
    timer.start()
    return timer


def resolve_download_path(requested: str, root: str) -> Optional[str]:
    """
    Return the absolute path for a download request, or None when it
    escapes the root folder.
    """
    if not requested:
        return None

    root_real = os.path.realpath(root)
    candidate = requested
    if not os.path.isabs(candidate):
        candidate = os.path.join(root_real, candidate)
    candidate = os.path.realpath(candidate)

    if os.path.commonpath([root_real, candidate]) != root_real or candidate == root_real:
        return None
    return candidate


def build_zip(entries: Iterable[Tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buffer.getvalue()
