import base64
import colorsys
import io
import json
import logging
import re
import secrets
import uuid
from typing import Any, Dict, List, Optional, Tuple

from faker import Faker
from PIL import Image, UnidentifiedImageError
import qrcode
import qrcode.image.svg
from qrcode.exceptions import DataOverflowError

from text_tools import ToolInputError

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------
# Passwords / UUIDs
# ----------------------------------------------------------------------

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
NUMBERS = "0123456789"
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

MAX_PASSWORD_LENGTH = 256


def generate_password(
    length: int = 12,
    uppercase: bool = True,
    lowercase: bool = True,
    numbers: bool = True,
    symbols: bool = True,
) -> str:
    chars = ""
    if uppercase:
        chars += UPPERCASE
    if lowercase:
        chars += LOWERCASE
    if numbers:
        chars += NUMBERS
    if symbols:
        chars += SYMBOLS
    if not chars:
        raise ToolInputError("Select at least one character type.")

    try:
        length = int(length)
    except (TypeError, ValueError):
        raise ToolInputError("Password length must be a number")
    if not 1 <= length <= MAX_PASSWORD_LENGTH:
        raise ToolInputError(f"Password length must be between 1 and {MAX_PASSWORD_LENGTH}")

    return "".join(secrets.choice(chars) for _ in range(length))


def password_strength(password: str) -> str:
    score = 0
    if len(password) >= 8:
        score += 1
    if len(password) >= 12:
        score += 1
    if re.search(r"[A-Z]", password):
        score += 1
    if re.search(r"[a-z]", password):
        score += 1
    if re.search(r"[0-9]", password):
        score += 1
    if re.search(r"[^A-Za-z0-9]", password):
        score += 1

    if score <= 2:
        return "weak"
    if score == 3:
        return "medium"
    if score == 4:
        return "strong"
    return "very strong"


def generate_uuid(version: str = "v4", namespace: Optional[str] = None, name: Optional[str] = None) -> str:
    if version == "v4":
        return str(uuid.uuid4())
    if version == "v5":
        if not namespace or not name:
            raise ToolInputError("Namespace and name are required for UUID v5.")
        try:
            ns = uuid.UUID(namespace)
        except ValueError as e:
            logger.warning("Invalid UUID v5 namespace %r: %s", namespace, e)
            raise ToolInputError(f"Invalid UUID v5 inputs: {e}")
        return str(uuid.uuid5(ns, name))
    raise ToolInputError(f"Unsupported UUID version: {version}")


# ----------------------------------------------------------------------
# Mock data
# ----------------------------------------------------------------------

MAX_MOCK_ITEMS = 1000

_faker = Faker("en_US")


def _mock_value(key: str, sample: Any) -> Any:
    k = key.lower()

    if "name" in k and "username" not in k:
        if "first" in k:
            return _faker.first_name()
        if "last" in k:
            return _faker.last_name()
        return _faker.name()

    if "email" in k:
        if isinstance(sample, str) and "@" in sample:
            domain = sample.split("@", 1)[1] or "example.com"
            return f"{_faker.user_name()}@{domain}"
        return _faker.email()

    if "address" in k:
        if "street" in k:
            return _faker.street_address()
        if "city" in k:
            return _faker.city()
        if "state" in k:
            return _faker.state()
        if "zip" in k or "postal" in k:
            return _faker.zipcode()
        if "country" in k:
            return _faker.country()
        return _faker.address().replace("\n", ", ")

    if "phone" in k:
        return _faker.phone_number()
    if "age" in k:
        return _faker.random_int(min=18, max=80)
    if "sex" in k or "gender" in k:
        return _faker.random_element(["female", "male"])
    if "id" in k or "uuid" in k:
        return _faker.uuid4()
    if "date" in k or "birth" in k:
        return _faker.past_datetime().isoformat()
    if "username" in k:
        return _faker.user_name()
    if "password" in k:
        return _faker.password()

    # bool before int: bool is an int subclass
    if isinstance(sample, bool):
        return _faker.pybool()
    if isinstance(sample, (int, float)):
        return _faker.random_int(min=max(0, int(sample) - 10), max=int(sample) + 10)
    if isinstance(sample, list):
        return [_mock_value(key, sample[0] if sample else None) for _ in sample]
    if isinstance(sample, dict):
        return mock_object(sample)

    return _faker.word()


def mock_object(template: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _mock_value(key, value) for key, value in template.items()}


def generate_mock_data(template: Any, count: int = 1) -> List[Dict[str, Any]]:
    if not isinstance(template, dict):
        raise ToolInputError("Input must be a valid JSON object.")
    try:
        count = int(count)
    except (TypeError, ValueError):
        raise ToolInputError("Number of items must be a number")
    if not 1 <= count <= MAX_MOCK_ITEMS:
        raise ToolInputError(f"Number of items must be between 1 and {MAX_MOCK_ITEMS}")
    return [mock_object(template) for _ in range(count)]


# ----------------------------------------------------------------------
# Colour palettes
# ----------------------------------------------------------------------

PALETTE_KINDS = ("dominant", "complementary", "analogous")

_HEX_RE = re.compile(r"^#?([0-9a-f]{3}|[0-9a-f]{6})$", re.I)
_RGB_RE = re.compile(r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*[\d.]+\s*)?\)$", re.I)
_HSL_RE = re.compile(
    r"^hsla?\(\s*(-?[\d.]+)(?:deg)?\s*,\s*([\d.]+)%\s*,\s*([\d.]+)%\s*(?:,\s*[\d.]+\s*)?\)$", re.I
)

RGB = Tuple[int, int, int]


def parse_color(value: str) -> RGB:
    """Parse #rgb, #rrggbb, rgb(...) or hsl(...) into an RGB triple."""
    text = (value or "").strip()

    m = _HEX_RE.match(text)
    if m:
        hx = m.group(1)
        if len(hx) == 3:
            hx = "".join(c * 2 for c in hx)
        return int(hx[0:2], 16), int(hx[2:4], 16), int(hx[4:6], 16)

    m = _RGB_RE.match(text)
    if m:
        r, g, b = (int(v) for v in m.groups())
        if max(r, g, b) > 255:
            raise ToolInputError("RGB components must be between 0 and 255")
        return r, g, b

    m = _HSL_RE.match(text)
    if m:
        h, s, l = float(m.group(1)) % 360, float(m.group(2)), float(m.group(3))
        if s > 100 or l > 100:
            raise ToolInputError("Saturation and lightness must be percentages")
        r, g, b = colorsys.hls_to_rgb(h / 360, l / 100, s / 100)
        return round(r * 255), round(g * 255), round(b * 255)

    raise ToolInputError(
        "Invalid color input. Use hex, RGB, or HSL (e.g., #FF0000, rgb(255,0,0), hsl(0,100%,50%))."
    )


def describe_color(rgb: RGB) -> Dict[str, Any]:
    r, g, b = rgb
    h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    return {
        "hex": f"#{r:02X}{g:02X}{b:02X}",
        "rgb": [r, g, b],
        "hsl": [round(h * 360, 1), round(s * 100, 1), round(l * 100, 1)],
    }


def rotate_hue(rgb: RGB, degrees: float) -> RGB:
    h, l, s = colorsys.rgb_to_hls(*(c / 255 for c in rgb))
    h = (h + degrees / 360) % 1.0
    r, g, b = colorsys.hls_to_rgb(h, l, s)
    return round(r * 255), round(g * 255), round(b * 255)


def palette_from_color(value: str, kind: str = "dominant") -> List[Dict[str, Any]]:
    if kind not in PALETTE_KINDS:
        raise ToolInputError(f"Unknown palette type: {kind}")

    base = parse_color(value)
    if kind == "dominant":
        colors = [base]
    elif kind == "complementary":
        colors = [base, rotate_hue(base, 180)]
    else:
        colors = [base, rotate_hue(base, -30), rotate_hue(base, 30)]
    return [describe_color(c) for c in colors]


def palette_from_image(data: bytes, kind: str = "dominant") -> List[Dict[str, Any]]:
    """Most frequent colours of an image via median-cut quantization."""
    if kind not in PALETTE_KINDS:
        raise ToolInputError(f"Unknown palette type: {kind}")
    count = 5 if kind == "dominant" else 3

    try:
        img = Image.open(io.BytesIO(data)).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        logger.warning("Palette image could not be read: %s", e)
        raise ToolInputError(f"Image processing error: {e}")

    img.thumbnail((200, 200))
    quantized = img.quantize(colors=count, method=Image.Quantize.MEDIANCUT)
    palette = quantized.getpalette() or []
    usage = sorted(quantized.getcolors() or [], reverse=True)

    colors = []
    for _, index in usage[:count]:
        r, g, b = palette[index * 3:index * 3 + 3]
        colors.append(describe_color((r, g, b)))
    return colors


PALETTE_EXPORT_FORMATS = ("css", "sass", "json")


def export_palette(colors: List[str], fmt: str = "css") -> str:
    """
    Render hex colours as CSS custom properties, SASS variables or a
    JSON array. Names are 1-based: --color-1, $color-1.
    """
    if fmt == "css":
        lines = [f"  --color-{i}: {hx};" for i, hx in enumerate(colors, 1)]
        return ":root {\n" + "\n".join(lines) + "\n}"
    if fmt == "sass":
        return "\n".join(f"$color-{i}: {hx};" for i, hx in enumerate(colors, 1))
    if fmt == "json":
        return json.dumps(colors, indent=2)
    raise ToolInputError(f"Unknown export format: {fmt}")


# ----------------------------------------------------------------------
# QR codes
# ----------------------------------------------------------------------

QR_FORMATS = ("png", "svg")

QR_ERROR_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}

MAX_QR_BOX_SIZE = 40


def generate_qr(
    text: str,
    output: str = "png",
    error_correction: str = "H",
    box_size: int = 10,
    border: int = 4,
) -> Dict[str, str]:
    """
    Encode text as a QR code. PNG output comes back as a data URI, SVG
    output as markup.
    """
    if not text or not text.strip():
        raise ToolInputError("Please enter text or a URL to encode.")
    if output not in QR_FORMATS:
        raise ToolInputError(f"Unsupported QR format: {output}")
    level = QR_ERROR_LEVELS.get(str(error_correction).upper())
    if level is None:
        raise ToolInputError(f"Unknown error correction level: {error_correction}")
    try:
        box_size, border = int(box_size), int(border)
    except (TypeError, ValueError):
        raise ToolInputError("Size and border must be numbers")
    if not 1 <= box_size <= MAX_QR_BOX_SIZE or not 0 <= border <= 20:
        raise ToolInputError(f"Size must be 1-{MAX_QR_BOX_SIZE} and border 0-20")

    qr = qrcode.QRCode(version=None, error_correction=level, box_size=box_size, border=border)
    qr.add_data(text)
    try:
        qr.make(fit=True)
    except DataOverflowError:
        logger.warning("QR payload of %d characters does not fit", len(text))
        raise ToolInputError("Text is too long for a QR code")

    buffer = io.BytesIO()
    if output == "svg":
        qr.make_image(image_factory=qrcode.image.svg.SvgPathImage).save(buffer)
        return {"format": "svg", "svg": buffer.getvalue().decode("utf-8")}

    qr.make_image(fill_color="black", back_color="white").save(buffer, "PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return {"format": "png", "dataUri": f"data:image/png;base64,{encoded}"}
