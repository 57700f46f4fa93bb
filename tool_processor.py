import base64
import json
import logging
from typing import Any, Callable, Dict, Optional

from werkzeug.datastructures import MultiDict

import converters
import generators
import minifier
import text_tools
from minifier import MinifyError
from text_tools import ToolInputError
from tools import SLUG_TO_TOOL
from utils.files import UploadError, read_upload

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD = 10 * 1024 * 1024


def _flag(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _text(payload: Dict[str, Any], key: str = "input") -> str:
    value = payload.get(key)
    if value is None or not isinstance(value, str):
        raise ToolInputError(f"'{key}' must be a string")
    return value


def _upload(files: Optional[MultiDict], name: str, max_bytes: int) -> Optional[bytes]:
    if not files or name not in files:
        return None
    storage = files[name]
    if not storage or not (storage.filename or "").strip():
        return None
    return read_upload(storage, max_bytes)


# ----------------------------------------------------------------------
# Handlers: (payload, files, max_bytes) -> result dict
# ----------------------------------------------------------------------

def _json_formatter(payload, files, max_bytes):
    indent = payload.get("indent", 2)
    try:
        indent = int(indent)
    except (TypeError, ValueError):
        raise ToolInputError("'indent' must be a number")
    return {"output": text_tools.format_json(_text(payload), indent=indent)}


def _regex_tester(payload, files, max_bytes):
    matches = text_tools.match_regex(
        _text(payload, "pattern"),
        payload.get("flags") or "",
        _text(payload, "text"),
    )
    return {"matches": matches, "count": len(matches)}


_BASE64_OPS: Dict[str, Callable[[str], str]] = {
    "encode": text_tools.encode_base64,
    "decode": text_tools.decode_base64,
    "encode-url-safe": text_tools.encode_base64_url_safe,
    "decode-url-safe": text_tools.decode_base64_url_safe,
    "data-uri": text_tools.generate_data_uri,
    "hex-dump": text_tools.generate_hex_dump,
}


def _base64_utility(payload, files, max_bytes):
    operation = payload.get("operation", "encode")
    if operation not in _BASE64_OPS:
        raise ToolInputError(f"Unknown operation: {operation}")

    data = _upload(files, "file", max_bytes)
    if data is not None:
        # Files are always encoded first; the other operations then work on the encoding
        encoded = base64.b64encode(data).decode("ascii")
        if operation == "encode":
            return {"output": encoded}
        if operation == "encode-url-safe":
            return {"output": encoded.replace("+", "-").replace("/", "_").rstrip("=")}
        if operation in ("data-uri", "hex-dump"):
            return {"output": _BASE64_OPS[operation](encoded)}
        raise ToolInputError("Files can only be encoded")

    return {"output": _BASE64_OPS[operation](_text(payload))}


def _url_encode(payload, files, max_bytes):
    operation = payload.get("operation", "encode")

    if operation == "build-query":
        params = payload.get("params") or []
        if not isinstance(params, list) or not all(isinstance(p, dict) for p in params):
            raise ToolInputError("'params' must be a list of {key, value} objects")
        return {"output": text_tools.build_query_string(params)}

    value = _text(payload)
    if not value.strip():
        raise ToolInputError("Please enter a URL or text.")

    if operation == "encode":
        return {"output": text_tools.url_encode(value)}
    if operation == "decode":
        return {"output": text_tools.url_decode(value)}
    if operation == "base64-encode":
        return {"output": text_tools.encode_base64(value)}
    if operation == "base64-decode":
        return {"output": text_tools.decode_base64(value)}
    raise ToolInputError(f"Unknown operation: {operation}")


def _color_palette(payload, files, max_bytes):
    kind = payload.get("paletteType", "dominant")
    image = _upload(files, "image", max_bytes)
    if image is not None:
        result = {"colors": generators.palette_from_image(image, kind), "source": "image"}
    else:
        color = payload.get("color")
        if not color:
            raise ToolInputError("Please enter a color.")
        result = {"colors": generators.palette_from_color(str(color), kind), "source": "color"}

    export_format = payload.get("exportFormat")
    if export_format:
        hexes = [c["hex"] for c in result["colors"]]
        result["export"] = generators.export_palette(hexes, str(export_format).lower())
    return result


def _qr_utility(payload, files, max_bytes):
    return generators.generate_qr(
        _text(payload, "text"),
        str(payload.get("format", "png")).lower(),
        error_correction=payload.get("errorCorrection", "H"),
        box_size=payload.get("size", 10),
        border=payload.get("border", 4),
    )


def _csv_json_yaml(payload, files, max_bytes):
    output = text_tools.convert_data(
        _text(payload),
        payload.get("inputFormat", "json"),
        payload.get("outputFormat", "yaml"),
    )
    return {"output": output}


_MINIFIERS = {
    "html": minifier.minify_html,
    "css": minifier.minify_css,
    "js": minifier.minify_js,
}


def _minify(payload, files, max_bytes):
    mode = payload.get("mode", "html")
    if mode not in _MINIFIERS:
        raise ToolInputError(f"Unknown mode: {mode}")
    source = _text(payload)
    if not source.strip():
        raise ToolInputError("Please enter code to minify.")

    minified = _MINIFIERS[mode](source, beautify=_flag(payload.get("beautify")))
    return {"minified": minified, **minifier.size_report(source, minified)}


def _mock_data(payload, files, max_bytes):
    template = payload.get("template")
    if isinstance(template, str):
        if not template.strip():
            raise ToolInputError("Please enter a JSON template.")
        try:
            template = json.loads(template)
        except ValueError as e:
            raise ToolInputError(f"Error: {e}")
    return {"data": generators.generate_mock_data(template, payload.get("count", 1))}


def _uuid_pass(payload, files, max_bytes):
    mode = payload.get("mode", "password")

    if mode == "password":
        password = generators.generate_password(
            length=payload.get("length", 12),
            uppercase=_flag(payload.get("uppercase"), True),
            lowercase=_flag(payload.get("lowercase"), True),
            numbers=_flag(payload.get("numbers"), True),
            symbols=_flag(payload.get("symbols"), True),
        )
        return {
            "value": password,
            "type": "password",
            "strength": generators.password_strength(password),
        }

    if mode == "uuid":
        value = generators.generate_uuid(
            payload.get("version", "v4"),
            payload.get("namespace"),
            payload.get("name"),
        )
        return {"value": value, "type": "uuid"}

    raise ToolInputError(f"Unknown mode: {mode}")


def _time_convert(payload, files, max_bytes):
    mode = payload.get("mode", "convert")
    tz = payload.get("timezone", "UTC")

    if mode == "convert":
        output = converters.convert_timestamp(
            payload.get("input"),
            payload.get("inputType", "unix"),
            payload.get("outputType", "readable"),
            payload.get("format") or converters.DEFAULT_READABLE_FORMAT,
            tz,
        )
        return {"output": output, "formatType": payload.get("outputType", "readable")}

    if mode == "adjust":
        output = converters.adjust_timestamp(
            _text(payload),
            payload.get("adjustmentType", "add"),
            payload.get("adjustmentUnit", "days"),
            payload.get("adjustmentValue", 0),
            tz,
        )
        return {"output": output, "formatType": "iso"}

    if mode == "difference":
        unit = payload.get("diffUnit", "days")
        diff = converters.timestamp_difference(
            payload.get("startDate") or "",
            payload.get("endDate") or "",
            unit,
        )
        return {"output": diff, "formatType": unit}

    raise ToolInputError(f"Unknown mode: {mode}")


def _hash_convert(payload, files, max_bytes):
    algorithms = payload.get("algorithms") or ["sha256"]
    if isinstance(algorithms, str):
        algorithms = [a.strip() for a in algorithms.split(",") if a.strip()]

    data: Any = _upload(files, "file", max_bytes)
    if data is None:
        data = _text(payload, "text")

    return text_tools.compute_hashes(
        data,
        algorithms,
        output=payload.get("format", "hex"),
        compare=payload.get("compare"),
    )


def _unit_convert(payload, files, max_bytes):
    category = payload.get("category", "length")
    output = converters.convert_unit(
        payload.get("value", 1),
        category,
        payload.get("from", ""),
        payload.get("to", ""),
    )
    return {"output": output}


HANDLERS = {
    "json-formatter": _json_formatter,
    "regex-tester": _regex_tester,
    "base64-utility": _base64_utility,
    "url-encode": _url_encode,
    "color-pallette": _color_palette,
    "csv-json-yaml": _csv_json_yaml,
    "html-css-js": _minify,
    "mock-data": _mock_data,
    "uuid-pass": _uuid_pass,
    "time-convert": _time_convert,
    "hash-convert": _hash_convert,
    "unit-convert": _unit_convert,
    "qr-utility": _qr_utility,
}


def process_tool(
    slug: str,
    payload: Dict[str, Any],
    files: Optional[MultiDict] = None,
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD,
) -> Dict[str, Any]:
    """
    Run one catalog utility. Mirrors process_pdf: returns
    {"type": "json", "data": {"result": ...}} or
    {"type": "error", "data": {"error": ...}, "status_code": n}.
    """
    slug = (slug or "").strip().lower()
    handler = HANDLERS.get(slug)
    if handler is None or slug not in SLUG_TO_TOOL:
        return {"type": "error", "data": {"error": f"Unknown tool: {slug}"}, "status_code": 404}

    if not isinstance(payload, dict):
        return {"type": "error", "data": {"error": "Request body must be a JSON object"}, "status_code": 400}

    try:
        result = handler(payload, files, max_upload_bytes)
        return {"type": "json", "data": {"result": result}}

    except UploadError as e:
        return {"type": "error", "data": {"error": str(e)}, "status_code": e.status_code}

    except (ToolInputError, MinifyError) as e:
        return {"type": "error", "data": {"error": str(e)}, "status_code": 400}

    except Exception as e:
        logger.exception("Tool %s crashed", slug)
        return {"type": "error", "data": {"error": str(e) or "Unexpected error"}, "status_code": 500}
