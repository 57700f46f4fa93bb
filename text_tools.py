"""
Text and data utilities: Base64, URL encoding, JSON formatting, regex
testing, hashing and CSV/JSON/YAML conversion.

Base64 helpers work on "binary strings" (one character per byte, Latin-1),
the same model as the browser's btoa/atob.
"""
import base64
import binascii
import csv
import hashlib
import io
import json
import logging
import re
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Union
from urllib.parse import quote, unquote

import yaml

logger = logging.getLogger(__name__)


class ToolInputError(ValueError):
    """Raised when a tool receives input it cannot process."""
    pass


# ----------------------------------------------------------------------
# Base64
# ----------------------------------------------------------------------

def _to_bytes(text: str) -> bytes:
    try:
        return text.encode("latin-1")
    except UnicodeEncodeError:
        raise ToolInputError("The string contains characters outside of the Latin1 range")


def _b64decode(text: str) -> bytes:
    cleaned = re.sub(r"\s+", "", text)
    if len(cleaned) % 4 == 1:
        raise ToolInputError("Invalid base64 input")
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        raise ToolInputError("Invalid base64 input")


def encode_base64(text: str) -> str:
    return base64.b64encode(_to_bytes(text)).decode("ascii")


def decode_base64(text: str) -> str:
    return _b64decode(text).decode("latin-1")


def encode_base64_url_safe(text: str) -> str:
    return encode_base64(text).replace("+", "-").replace("/", "_").rstrip("=")


def decode_base64_url_safe(text: str) -> str:
    return decode_base64(text.replace("-", "+").replace("_", "/"))


def detect_mime_type(data: bytes) -> str:
    if len(data) >= 2:
        if data[0] == 0xFF and data[1] == 0xD8:
            return "image/jpeg"
        if data[0] == 0x89 and data[1] == 0x50:
            return "image/png"
        if data[0] == 0x47 and data[1] == 0x49:
            return "image/gif"
        if data[0] == 0x25 and data[1] == 0x50:
            return "application/pdf"
    return "application/octet-stream"


def generate_data_uri(text: str) -> str:
    if text.startswith("data:"):
        return text
    try:
        data = _b64decode(text)
    except ToolInputError:
        return "data:text/plain;base64," + base64.b64encode(text.encode("utf-8")).decode("ascii")
    return f"data:{detect_mime_type(data)};base64,{text}"


def generate_hex_dump(text: str, bytes_per_line: int = 16) -> str:
    data = _b64decode(text)
    lines = []

    for offset in range(0, len(data), bytes_per_line):
        chunk = data[offset:offset + bytes_per_line]
        line = f"{offset:08x}  "
        for j in range(bytes_per_line):
            line += f"{chunk[j]:02x} " if j < len(chunk) else "   "
            if j == 7:
                line += " "
        ascii_col = "".join(chr(b) if 32 <= b <= 126 else "." for b in chunk)
        lines.append(f"{line} |{ascii_col}|\n")

    return "".join(lines)


# ----------------------------------------------------------------------
# URL
# ----------------------------------------------------------------------

# Characters encodeURIComponent leaves alone
_URI_SAFE = "-_.!~*'()"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def url_encode(text: str) -> str:
    return quote(text, safe=_URI_SAFE)


def url_decode(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ToolInputError("URI malformed")
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError:
        raise ToolInputError("URI malformed")


def build_query_string(params: Iterable[Dict[str, Any]]) -> str:
    valid = [
        (str(p.get("key", "")), str(p.get("value", "")))
        for p in params
        if str(p.get("key", "")).strip() and str(p.get("value", "")).strip()
    ]
    if not valid:
        raise ToolInputError("Please add at least one valid key-value pair.")
    return "&".join(f"{url_encode(k)}={url_encode(v)}" for k, v in valid)


# ----------------------------------------------------------------------
# JSON / regex
# ----------------------------------------------------------------------

def format_json(text: str, indent: int = 2) -> str:
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        raise ToolInputError("Invalid JSON")
    return json.dumps(parsed, indent=indent, ensure_ascii=False)


_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,
    "y": 0,
    "g": 0,
}


def match_regex(pattern: str, flags: str, text: str) -> List[str]:
    """
    Return the full-match strings of pattern in text. Flags use the
    JavaScript letters; without "g" only the first match is returned, and
    "y" anchors every match at the end of the previous one.
    """
    py_flags = 0
    for ch in flags or "":
        if ch not in _REGEX_FLAGS:
            raise ToolInputError("Invalid regular expression")
        py_flags |= _REGEX_FLAGS[ch]

    try:
        regex = re.compile(pattern, py_flags)
    except re.error:
        raise ToolInputError("Invalid regular expression")

    sticky = "y" in (flags or "")
    matches: List[str] = []
    pos = 0
    while pos <= len(text):
        m = regex.match(text, pos) if sticky else regex.search(text, pos)
        if not m:
            break
        matches.append(m.group(0))
        if "g" not in (flags or ""):
            break
        pos = m.end() if m.end() > m.start() else m.end() + 1

    return matches


# ----------------------------------------------------------------------
# Hashes
# ----------------------------------------------------------------------

HASH_ALGORITHMS = {
    "md5": hashlib.md5,
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
    "sha3": hashlib.sha3_256,
}

CHUNK_SIZE = 1024 * 1024


def compute_hashes(
    data: Union[bytes, str, BinaryIO],
    algorithms: Iterable[str],
    output: str = "hex",
    compare: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Hash text, bytes or a binary stream (read in 1MB chunks) with each
    requested algorithm. Returns {"hashes": {...}} plus "match" when a
    single algorithm is compared against an expected digest.
    """
    algos = [a.lower() for a in algorithms]
    if not algos:
        raise ToolInputError("Select at least one algorithm.")
    for a in algos:
        if a not in HASH_ALGORITHMS:
            raise ToolInputError(f"Invalid algorithm: {a}")
    if output not in ("hex", "base64"):
        raise ToolInputError(f"Invalid output format: {output}")

    hashers = {a: HASH_ALGORITHMS[a]() for a in algos}

    if isinstance(data, str):
        data = data.encode("utf-8")
    if isinstance(data, bytes):
        for h in hashers.values():
            h.update(data)
    else:
        for chunk in iter(lambda: data.read(CHUNK_SIZE), b""):
            for h in hashers.values():
                h.update(chunk)

    results = {}
    for a, h in hashers.items():
        if output == "hex":
            results[a] = h.hexdigest()
        else:
            results[a] = base64.b64encode(h.digest()).decode("ascii")

    out: Dict[str, Any] = {"hashes": results}
    if compare and compare.strip() and len(algos) == 1:
        out["match"] = results[algos[0]].lower() == compare.strip().lower()
    return out


# ----------------------------------------------------------------------
# CSV / JSON / YAML
# ----------------------------------------------------------------------

DATA_FORMATS = ("json", "yaml", "csv")


_EXTRA_FIELDS = object()


def _parse_csv(text: str) -> List[Dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text), restkey=_EXTRA_FIELDS)
    rows = []
    for row in reader:
        if _EXTRA_FIELDS in row:
            logger.warning("CSV row %d is wider than its header", reader.line_num)
            raise ToolInputError(f"Invalid CSV: row {reader.line_num} has more fields than the header")
        # Short rows fill missing columns with None
        if any(isinstance(v, str) and v.strip() for v in row.values()):
            rows.append(row)
    return rows


def _parse_data(text: str, fmt: str) -> Any:
    try:
        if fmt == "json":
            return json.loads(text)
        if fmt == "yaml":
            return yaml.safe_load(text)
        return _parse_csv(text)
    except ToolInputError:
        raise
    except (ValueError, yaml.YAMLError, csv.Error) as e:
        logger.warning("Could not parse %s input: %s", fmt, e)
        raise ToolInputError(f"Invalid {fmt.upper()}: {e}")


def _dump_csv(parsed: Any) -> str:
    if not isinstance(parsed, list) or not all(isinstance(r, dict) for r in parsed):
        raise ToolInputError("Conversion error: Input must be an array of objects for CSV output.")

    fields: List[str] = []
    for row in parsed:
        for key in row:
            if key not in fields:
                fields.append(key)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fields, lineterminator="\r\n")
    writer.writeheader()
    for row in parsed:
        writer.writerow({
            k: json.dumps(v) if isinstance(v, (dict, list)) else v
            for k, v in row.items()
        })
    return buffer.getvalue().rstrip("\r\n")


def convert_data(text: str, input_format: str, output_format: str) -> str:
    input_format = (input_format or "").lower()
    output_format = (output_format or "").lower()
    for fmt in (input_format, output_format):
        if fmt not in DATA_FORMATS:
            raise ToolInputError(f"Unsupported format: {fmt}")
    if not text or not text.strip():
        raise ToolInputError("Please enter some data to convert.")

    parsed = _parse_data(text, input_format)

    if output_format == "json":
        return json.dumps(parsed, indent=2, ensure_ascii=False)
    if output_format == "yaml":
        return yaml.safe_dump(parsed, indent=2, sort_keys=False, allow_unicode=True)
    return _dump_csv(parsed)
