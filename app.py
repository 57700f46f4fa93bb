import io
import logging
import mimetypes
import os
import posixpath
import secrets
import time
from typing import Any, Dict, List, Optional, Tuple

from flask import (
    Blueprint,
    Flask,
    Response,
    current_app,
    jsonify,
    request,
    send_file,
)
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

import sheets_sync
from config import Config
from image_processor import OUTPUT_FORMATS, ImageProcessingError, compress_image, generate_icons
from minifier import MinifyError, minify_css, minify_html, minify_js
from pdf_processor import ACTIONS, process_pdf
from sheets_sync import SheetsSyncError, load_feedback, submit_feedback
from storage import BlobNotFoundError, BlobStore
from tool_processor import process_tool
from tools import FILE_TOOLS, SLUG_TO_FILE_TOOL, SLUG_TO_TOOL, TOOLS
from utils.files import (
    UploadError,
    build_zip,
    collect_uploads,
    read_upload,
    remove_file,
    resolve_download_path,
    save_upload,
    schedule_cleanup,
    size_limit_message,
)

logger = logging.getLogger(__name__)

BUILD_EXTENSIONS = ("apk", "ipa")

bp = Blueprint("toolbench", __name__)


# ---------------------------------------------------
# HELPERS
# ---------------------------------------------------


def _error(message: str, status_code: int = 400, **extra: Any):
    return jsonify({"error": message, **extra}), status_code


def _store() -> BlobStore:
    return current_app.extensions["blob_store"]


def _max_upload() -> int:
    return current_app.config["MAX_UPLOAD_BYTES"]


def _int_field(name: str, default: int, low: int, high: int) -> int:
    try:
        value = int(request.form.get(name, ""))
    except ValueError:
        return default
    return value if low <= value <= high else default


def _optional_int(name: str) -> Optional[int]:
    try:
        value = int(request.form.get(name, ""))
    except ValueError:
        return None
    return value if value > 0 else None


def _unique_names(items: List[Tuple[bytes, str, str]]) -> List[Tuple[str, bytes]]:
    seen: Dict[str, int] = {}
    entries = []
    for data, name, _ in items:
        count = seen.get(name, 0)
        seen[name] = count + 1
        if count:
            stem, ext = os.path.splitext(name)
            name = f"{stem}_{count}{ext}"
        entries.append((name, data))
    return entries


# ---------------------------------------------------
# CATALOG
# ---------------------------------------------------


@bp.route("/health")
def health():
    return {"status": "ok"}


@bp.route("/api/tools")
def list_tools():
    return jsonify({"tools": TOOLS, "fileTools": FILE_TOOLS})


@bp.route("/api/tools/<slug>", methods=["GET"])
def tool_info(slug):
    tool = SLUG_TO_TOOL.get(slug) or SLUG_TO_FILE_TOOL.get(slug)
    if not tool:
        return _error(f"Unknown tool: {slug}", 404)
    return jsonify(tool)


@bp.route("/api/tools/<slug>", methods=["POST"])
def run_tool(slug):
    """
    Run a catalog utility. JSON body for text tools; multipart form when
    a file is attached (hash, base64, palette-from-image).
    """
    if request.files:
        payload = request.form.to_dict()
    else:
        payload = request.get_json(silent=True)
        if payload is None:
            payload = request.form.to_dict()

    result = process_tool(slug, payload, request.files, max_upload_bytes=_max_upload())

    status_code = result.get("status_code", 200)
    return jsonify(result.get("data", {})), status_code


# ---------------------------------------------------
# IMAGES
# ---------------------------------------------------


@bp.route("/api/compress-images", methods=["POST"])
def compress_images():
    images = [f for f in request.files.getlist("images") if f and (f.filename or "").strip()]
    if not images:
        return _error("No images provided")

    output_format = (request.form.get("outputFormat") or "webp").lower()
    if output_format not in OUTPUT_FORMATS:
        return _error(f"Unsupported output format: {output_format}")

    quality = _int_field("quality", 80, 1, 100)
    width = _optional_int("width")
    height = _optional_int("height")
    maintain_aspect = request.form.get("maintainAspect") == "true"

    processed = []
    try:
        for image in images:
            data = read_upload(image, _max_upload())
            processed.append(compress_image(
                data,
                image.filename,
                image.mimetype,
                quality=quality,
                output_format=output_format,
                width=width,
                height=height,
                maintain_aspect=maintain_aspect,
            ))
    except UploadError as e:
        return _error(str(e), e.status_code)
    except ImageProcessingError as e:
        return _error(str(e))
    except Exception as e:
        logger.exception("Image compression failed")
        return _error(str(e) or "Compression failed", 500)

    if len(processed) == 1:
        data, name, mimetype = processed[0]
        return send_file(
            io.BytesIO(data),
            mimetype=mimetype,
            as_attachment=True,
            download_name=name,
            max_age=0,
        )

    archive = build_zip(_unique_names(processed))
    return send_file(
        io.BytesIO(archive),
        mimetype="application/zip",
        as_attachment=True,
        download_name="compressed-images.zip",
        max_age=0,
    )


@bp.route("/api/generate-icons", methods=["POST"])
def generate_icons_route():
    icon = request.files.get("icon")
    if not icon or not (icon.filename or "").strip():
        return _error("No file")

    try:
        archive = generate_icons(read_upload(icon, _max_upload()))
    except UploadError as e:
        return _error(str(e), e.status_code)
    except ImageProcessingError as e:
        return _error(str(e))
    except Exception as e:
        logger.exception("Icon generation failed")
        return _error(str(e) or "Icon generation failed", 500)

    return send_file(
        io.BytesIO(archive),
        mimetype="application/zip",
        as_attachment=True,
        download_name="app-icons.zip",
        max_age=0,
    )


# ---------------------------------------------------
# MINIFIERS
# ---------------------------------------------------


def _minify(field: str, label: str, fn):
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return _error(f"Invalid or missing {label} content")

    source = body.get(field)
    if not source or not isinstance(source, str):
        return _error(f"Invalid or missing {label} content")

    try:
        return jsonify({"minified": fn(source, beautify=bool(body.get("beautify")))})
    except MinifyError as e:
        return _error(str(e))
    except Exception as e:
        logger.exception("%s minification failed", label)
        return _error(str(e) or f"Failed to minify {label}", 500)


@bp.route("/api/minify-css", methods=["POST"])
def minify_css_route():
    return _minify("css", "CSS", minify_css)


@bp.route("/api/minify-html", methods=["POST"])
def minify_html_route():
    return _minify("html", "HTML", minify_html)


@bp.route("/api/minify-js", methods=["POST"])
def minify_js_route():
    return _minify("js", "JavaScript", minify_js)


# ---------------------------------------------------
# PDF ACTIONS
# ---------------------------------------------------


@bp.route("/api/actions/<action>", methods=["POST"])
def pdf_action(action):
    """
    Save file0..fileN (and an optional "image" for edit-pdf), hand them to
    process_pdf, and schedule the outputs for deletion.
    """
    if action not in ACTIONS:
        return jsonify({"success": False, "error": f"Unknown action: {action}"}), 404

    uploads = collect_uploads(request.files)
    if not uploads:
        return jsonify({"success": False, "error": "No file provided"}), 400

    cfg = current_app.config
    saved: List[str] = []
    image_path = None

    try:
        for f in uploads:
            saved.append(save_upload(f, cfg["UPLOAD_FOLDER"], cfg["MAX_UPLOAD_BYTES"]))

        image = request.files.get("image")
        if action == "edit-pdf" and image and (image.filename or "").strip():
            image_path = save_upload(image, cfg["UPLOAD_FOLDER"], cfg["MAX_UPLOAD_BYTES"])
            saved.append(image_path)

        result = process_pdf(
            action=action,
            file_paths=saved[:len(uploads)],
            output_folder=cfg["TMP_FOLDER"],
            form_data=request.form.to_dict(),
            image_path=image_path,
        )
    except UploadError as e:
        return jsonify({"success": False, "error": str(e)}), e.status_code
    finally:
        for path in saved:
            remove_file(path)

    if result.get("type") == "json":
        outputs = result.get("outputs", [])
        folders = sorted({os.path.dirname(p) for p in outputs})
        schedule_cleanup(outputs, cfg["CLEANUP_DELAY_SECONDS"], folders=folders)
        return jsonify(result["data"])

    return jsonify(result.get("data", {})), result.get("status_code", 500)


@bp.route("/api/download")
def download():
    path = resolve_download_path(request.args.get("file", ""), current_app.config["TMP_FOLDER"])
    if not path:
        return _error("Invalid file path")
    if not os.path.isfile(path):
        return _error("File not found", 404)

    mimetype = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return send_file(
        path,
        mimetype=mimetype,
        as_attachment=True,
        download_name=os.path.basename(path),
        max_age=0,
    )


# ---------------------------------------------------
# BUILD SHARE / BLOBS
# ---------------------------------------------------


@bp.route("/api/upload-build", methods=["POST"])
def upload_build():
    file = request.files.get("file")
    if not file or not (file.filename or "").strip():
        return _error("No file provided")

    ext = file.filename.rsplit(".", 1)[-1].lower() if "." in file.filename else ""
    if ext not in BUILD_EXTENSIONS:
        return _error("Only APK and IPA files are supported.")

    try:
        data = read_upload(file, _max_upload())
        key = f"builds/{int(time.time() * 1000)}-{secrets.token_hex(4)}.{ext}"
        url = _store().put(key, data)
    except UploadError as e:
        return _error(str(e), e.status_code)
    except Exception:
        logger.exception("Build upload failed")
        return _error("Upload failed", 500)

    return jsonify({"url": url})


@bp.route("/blobs/<path:key>")
def get_blob(key):
    try:
        obj = _store().open(key)
    except (BlobNotFoundError, ValueError):
        return _error("File not found", 404)

    body = obj["Body"]
    mimetype = obj.get("ContentType") or mimetypes.guess_type(key)[0] or "application/octet-stream"
    headers = {"Content-Disposition": f'attachment; filename="{posixpath.basename(key)}"'}
    if obj.get("ContentLength") is not None:
        headers["Content-Length"] = str(obj["ContentLength"])

    def stream():
        try:
            yield from body.iter_chunks()
        finally:
            body.close()

    return Response(stream(), mimetype=mimetype, headers=headers)


# ---------------------------------------------------
# FEEDBACK
# ---------------------------------------------------


@bp.route("/api/feedback", methods=["POST"])
def feedback():
    body = request.get_json(silent=True) or request.form.to_dict()
    if not isinstance(body, dict):
        return jsonify({"success": False, "error": "Request body must be a JSON object"}), 400

    try:
        submit_feedback(
            _store(),
            body.get("type", ""),
            body.get("description", ""),
            body.get("email", ""),
        )
    except SheetsSyncError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except Exception:
        logger.exception("Error submitting feedback")
        return jsonify({"success": False, "error": "Failed to submit feedback"}), 500

    return jsonify({"success": True})


@bp.route("/api/cron/sync-sheets")
def sync_sheets():
    cfg = current_app.config
    secret = cfg.get("CRON_SECRET")
    if not secret or request.headers.get("Authorization") != f"Bearer {secret}":
        return _error("Unauthorized", 401)

    store = _store()
    try:
        if not load_feedback(store):
            return jsonify({"message": "No data to sync"})

        service = sheets_sync.build_sheets_service(cfg.get("GOOGLE_CLIENT_EMAIL"), cfg.get("GOOGLE_PRIVATE_KEY"))
        synced = sheets_sync.sync_feedback_to_sheet(store, service, cfg.get("GOOGLE_SHEETS_ID"))
    except Exception:
        logger.exception("Sync failed")
        return _error("Sync failed", 500)

    if not synced:
        return jsonify({"message": "No data to sync"})
    return jsonify({"synced": synced})


# ---------------------------------------------------
# ERRORS
# ---------------------------------------------------


def _too_large(e: RequestEntityTooLarge):
    limit = current_app.config.get("MAX_CONTENT_LENGTH") or 0
    return _error(size_limit_message(limit) if limit else "Request too large", 413)


def _http_error(e: HTTPException):
    return _error(e.description or e.name, e.code or 500)


def _server_error(e: Exception):
    logger.exception("Unhandled error")
    return _error("Internal server error", 500)


# ---------------------------------------------------
# APP FACTORY
# ---------------------------------------------------


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    os.makedirs(app.config["TMP_FOLDER"], exist_ok=True)

    app.extensions["blob_store"] = BlobStore(
        app.config["BLOB_BUCKET"],
        endpoint_url=app.config.get("BLOB_ENDPOINT_URL"),
        access_key=app.config.get("BLOB_ACCESS_KEY_ID"),
        secret_key=app.config.get("BLOB_SECRET_ACCESS_KEY"),
        region=app.config.get("BLOB_REGION") or "us-east-1",
        public_url=app.config.get("BLOB_PUBLIC_URL") or "/blobs",
    )

    app.register_blueprint(bp)
    app.register_error_handler(RequestEntityTooLarge, _too_large)
    app.register_error_handler(HTTPException, _http_error)
    app.register_error_handler(Exception, _server_error)

    if not app.config.get("CRON_SECRET"):
        logger.warning("CRON_SECRET is not set; /api/cron/sync-sheets will reject every request.")

    return app


# ---------------------------------------------------
# MAIN
# ---------------------------------------------------

if __name__ == "__main__":
    # For local testing
    create_app().run(debug=True, host="0.0.0.0", port=5000)
