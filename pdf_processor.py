import json
import logging
import os
import shutil
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from utils.pdf_processor import PDFProcessor, PDFProcessorError

logger = logging.getLogger(__name__)

ACTIONS = (
    "convert-pdf-to-word",
    "convert-pdf-to-images",
    "merge-pdfs",
    "split-pdf",
    "edit-pdf",
    "images-to-pdf",
)

_processor = PDFProcessor()


def download_url(path: str) -> str:
    return f"/api/download?file={quote(path, safe='')}"


def _job_folder(output_folder: str) -> str:
    path = os.path.join(output_folder, uuid.uuid4().hex)
    os.makedirs(path, exist_ok=True)
    return path


def _discard(job: Optional[str]) -> None:
    # Partial outputs of a failed action are never handed out
    if job:
        shutil.rmtree(job, ignore_errors=True)


def _out_name(source_path: str, ext: str) -> str:
    stem = os.path.splitext(os.path.basename(source_path))[0]
    return f"{PDFProcessor.sanitize_filename(stem) or 'output'}{ext}"


def _require_pdfs(paths: List[str]) -> None:
    for path in paths:
        with open(path, "rb") as f:
            if f.read(5) != b"%PDF-":
                raise PDFProcessorError("No valid PDF file provided")


def _json_field(form_data: Dict[str, Any], key: str) -> Any:
    raw = form_data.get(key)
    if raw in (None, ""):
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        raise PDFProcessorError(f"Invalid JSON in '{key}'")


def _collect_edits(form_data: Dict[str, Any], image_path: Optional[str]) -> List[Dict[str, Any]]:
    """
    Either a full "edits" JSON list, or a single "text" + "position"
    ({"page", "x", "y", "size"}) pair. An uploaded image joins the
    single edit at the same position.
    """
    edits = _json_field(form_data, "edits")
    if edits is not None:
        if not isinstance(edits, list) or not all(isinstance(e, dict) for e in edits):
            raise PDFProcessorError("'edits' must be a JSON list of objects")
        # Clients cannot point at arbitrary server paths
        edits = [{k: v for k, v in e.items() if k != "image_path"} for e in edits]
        if image_path:
            position = _json_field(form_data, "position") or {}
            if not isinstance(position, dict):
                raise PDFProcessorError("'position' must be a JSON object")
            edits.append({**position, "image_path": image_path})
        if not edits:
            raise PDFProcessorError("No edits provided")
        return edits

    position = _json_field(form_data, "position") or {}
    if not isinstance(position, dict):
        raise PDFProcessorError("'position' must be a JSON object")

    edit: Dict[str, Any] = {
        "page": position.get("page", 1),
        "x": position.get("x", 50),
        "y": position.get("y", 50),
        "size": position.get("size", 12),
    }
    text = form_data.get("text")
    if text:
        edit["text"] = text
    if image_path:
        edit["image_path"] = image_path

    if "text" not in edit and "image_path" not in edit:
        raise PDFProcessorError("No edits provided")
    return [edit]


def process_pdf(
    action: str,
    file_paths: List[str],
    output_folder: str,
    form_data: Dict[str, Any],
    image_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run one document action and describe the outcome.

    Returns {"type": "json", "data": {...}, "outputs": [paths]} on success
    and {"type": "error", "data": {...}, "status_code": n} on failure.
    """
    if not file_paths:
        return {
            "type": "error",
            "data": {"success": False, "error": "No file provided"},
            "status_code": 400,
        }

    if action not in ACTIONS:
        return {
            "type": "error",
            "data": {"success": False, "error": f"Unknown action: {action}"},
            "status_code": 404,
        }

    primary = file_paths[0]
    job = None

    try:
        job = _job_folder(output_folder)

        if action == "convert-pdf-to-word":
            _require_pdfs([primary])
            out = _processor.pdf_to_docx(primary, os.path.join(job, _out_name(primary, ".docx")))
            outputs = [out]
            data = {"success": True, "docUrl": download_url(out)}

        elif action == "convert-pdf-to-images":
            _require_pdfs([primary])
            outputs = _processor.pdf_to_images(primary, job)
            data = {"success": True, "urls": [download_url(p) for p in outputs]}

        elif action == "merge-pdfs":
            if len(file_paths) < 2:
                raise PDFProcessorError("At least two PDF files are required to merge")
            _require_pdfs(file_paths)
            out = _processor.merge_pdfs(file_paths, os.path.join(job, "merged.pdf"))
            outputs = [out]
            data = {"success": True, "url": download_url(out)}

        elif action == "split-pdf":
            _require_pdfs([primary])
            ranges = _processor.parse_ranges(form_data.get("ranges", ""))
            outputs = _processor.split_pdf(primary, job, ranges)
            data = {"success": True, "urls": [download_url(p) for p in outputs]}

        elif action == "edit-pdf":
            _require_pdfs([primary])
            edits = _collect_edits(form_data, image_path)
            out = _processor.edit_pdf(primary, os.path.join(job, "edited.pdf"), edits)
            outputs = [out]
            data = {"success": True, "url": download_url(out)}

        elif action == "images-to-pdf":
            out = _processor.images_to_pdf(file_paths, os.path.join(job, "images.pdf"))
            outputs = [out]
            data = {"success": True, "url": download_url(out)}

        logger.info("Action %s produced %d file(s)", action, len(outputs))
        return {"type": "json", "data": data, "outputs": outputs}

    except PDFProcessorError as e:
        logger.warning("Action %s failed: %s", action, e)
        _discard(job)
        return {"type": "error", "data": {"success": False, "error": str(e)}, "status_code": 400}

    except Exception as e:
        logger.exception("Action %s crashed", action)
        _discard(job)
        return {
            "type": "error",
            "data": {"success": False, "error": str(e) or "Conversion failed"},
            "status_code": 500,
        }
