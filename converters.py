import logging
import math
import re
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Dict, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from text_tools import ToolInputError

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------
# Units
# ----------------------------------------------------------------------

# A unit is either a linear factor to the category's base unit or a
# (to_base, from_base) pair of functions.
Unit = Union[float, Tuple[Callable[[float], float], Callable[[float], float]]]


def _reciprocal(k: float) -> Tuple[Callable[[float], float], Callable[[float], float]]:
    def to_base(v: float) -> float:
        if v == 0:
            raise ToolInputError("Value must be non-zero for this unit")
        return k / v
    return to_base, to_base


UNIT_CATEGORIES: Dict[str, Dict[str, Unit]] = {
    "length": {
        "nanometer": 1e-9,
        "micrometer": 1e-6,
        "millimeter": 0.001,
        "centimeter": 0.01,
        "meter": 1,
        "kilometer": 1000,
        "inch": 0.0254,
        "foot": 0.3048,
        "yard": 0.9144,
        "mile": 1609.34,
        "nautical_mile": 1852,
    },
    "area": {
        "square_millimeter": 1e-6,
        "square_centimeter": 0.0001,
        "square_meter": 1,
        "square_kilometer": 1e6,
        "square_inch": 0.00064516,
        "square_foot": 0.092903,
        "square_yard": 0.836127,
        "acre": 4046.86,
        "hectare": 10000,
    },
    "volume": {
        "milliliter": 0.001,
        "liter": 1,
        "cubic_meter": 1000,
        "gallon": 3.78541,
        "quart": 0.946353,
        "pint": 0.473176,
        "fluid_ounce": 0.0295735,
        "cubic_inch": 0.0163871,
        "cubic_foot": 28.3168,
    },
    "mass": {
        "microgram": 1e-9,
        "milligram": 1e-6,
        "gram": 0.001,
        "kilogram": 1,
        "tonne": 1000,
        "ounce": 0.0283495,
        "pound": 0.453592,
        "stone": 6.35029,
    },
    "temperature": {
        "celsius": (lambda v: v, lambda v: v),
        "fahrenheit": (lambda v: (v - 32) * 5 / 9, lambda v: v * 9 / 5 + 32),
        "kelvin": (lambda v: v - 273.15, lambda v: v + 273.15),
    },
    "pressure": {
        "pascal": 1,
        "kilopascal": 1000,
        "bar": 100000,
        "atmosphere": 101325,
        "psi": 6894.76,
        "torr": 133.322,
        "mmhg": 133.322,
    },
    "energy": {
        "joule": 1,
        "kilojoule": 1000,
        "calorie": 4.184,
        "kilocalorie": 4184,
        "watt_hour": 3600,
        "kilowatt_hour": 3600000,
        "btu": 1055.06,
    },
    "power": {
        "watt": 1,
        "kilowatt": 1000,
        "horsepower": 745.7,
        "btu_per_hour": 0.293071,
    },
    "speed": {
        "meter_per_second": 1,
        "kilometer_per_hour": 0.277778,
        "mile_per_hour": 0.44704,
        "knot": 0.514444,
        "foot_per_second": 0.3048,
    },
    "time": {
        "nanosecond": 1e-9,
        "microsecond": 1e-6,
        "millisecond": 0.001,
        "second": 1,
        "minute": 60,
        "hour": 3600,
        "day": 86400,
        "week": 604800,
        "year": 31536000,
    },
    "angle": {
        "radian": 1,
        "degree": math.pi / 180,
        "gradian": math.pi / 200,
        "arcminute": math.pi / (180 * 60),
        "arcsecond": math.pi / (180 * 3600),
    },
    "data": {
        "bit": 0.125,
        "byte": 1,
        "kilobyte": 1024,
        "megabyte": 1024 ** 2,
        "gigabyte": 1024 ** 3,
        "terabyte": 1024 ** 4,
    },
    "fuel_efficiency": {
        "kilometer_per_liter": 1,
        "mile_per_gallon": 0.425144,
        "liter_per_100km": _reciprocal(100),
    },
    "torque": {
        "newton_meter": 1,
        "foot_pound": 1.35582,
        "inch_pound": 0.112985,
    },
    "frequency": {
        "hertz": 1,
        "kilohertz": 1000,
        "megahertz": 1e6,
        "gigahertz": 1e9,
    },
    "force": {
        "newton": 1,
        "kilonewton": 1000,
        "dyne": 0.00001,
        "pound_force": 4.44822,
        "kilogram_force": 9.80665,
    },
}


def _unit(category: str, name: str) -> Unit:
    units = UNIT_CATEGORIES.get(category)
    if units is None:
        raise ToolInputError(f"Unknown category: {category}")
    if name not in units:
        raise ToolInputError(f"Unknown unit '{name}' for {category}")
    return units[name]


def convert_unit(value: float, category: str, from_unit: str, to_unit: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ToolInputError("Value must be a number")

    src = _unit(category, from_unit)
    dst = _unit(category, to_unit)

    base = src[0](value) if isinstance(src, tuple) else value * src
    return dst[1](base) if isinstance(dst, tuple) else base / dst


# ----------------------------------------------------------------------
# Timestamps
# ----------------------------------------------------------------------

DEFAULT_READABLE_FORMAT = "yyyy-MM-dd HH:mm:ss"

# date-fns tokens, longest first
_FORMAT_TOKENS = [
    ("yyyy", "%Y"), ("yy", "%y"),
    ("MMMM", "%B"), ("MMM", "%b"), ("MM", "%m"),
    ("dd", "%d"),
    ("EEEE", "%A"), ("EEE", "%a"),
    ("HH", "%H"), ("hh", "%I"),
    ("mm", "%M"), ("ss", "%S"),
    ("a", "%p"),
]
_TOKEN_RE = re.compile("'[^']*'|" + "|".join(t for t, _ in _FORMAT_TOKENS))
_TOKEN_MAP = dict(_FORMAT_TOKENS)

DURATION_UNITS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
    "weeks": 604800,
}


def to_strftime(fmt: str) -> str:
    def _sub(m: re.Match) -> str:
        token = m.group(0)
        if token.startswith("'"):
            return token[1:-1].replace("%", "%%")
        return _TOKEN_MAP[token]

    out = []
    last = 0
    for m in _TOKEN_RE.finditer(fmt):
        out.append(fmt[last:m.start()].replace("%", "%%"))
        out.append(_sub(m))
        last = m.end()
    out.append(fmt[last:].replace("%", "%%"))
    return "".join(out)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone requested: %r", name)
        raise ToolInputError(f"Unknown timezone: {name}")


def _parse_iso(value: str) -> datetime:
    try:
        dt = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        logger.warning("Unparseable ISO date %r: %s", value, e)
        raise ToolInputError("Invalid date input (use ISO format).")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=dt_timezone.utc)
    return dt


def _iso(dt: datetime) -> str:
    dt = dt.astimezone(dt_timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str, input_type: str, fmt: str = DEFAULT_READABLE_FORMAT) -> datetime:
    if value is None or not str(value).strip():
        raise ToolInputError("Please enter an input.")
    value = str(value).strip()

    if input_type == "unix":
        try:
            return datetime.fromtimestamp(float(value), tz=dt_timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            logger.warning("Unix timestamp %r out of range: %s", value, e)
            raise ToolInputError("Invalid date input.")
    if input_type == "iso":
        return _parse_iso(value)
    if input_type == "readable":
        try:
            dt = datetime.strptime(value, to_strftime(fmt))
        except ValueError:
            raise ToolInputError("Invalid date input.")
        return dt.replace(tzinfo=dt_timezone.utc)
    raise ToolInputError(f"Unknown input type: {input_type}")


def convert_timestamp(
    value: str,
    input_type: str = "unix",
    output_type: str = "readable",
    fmt: str = DEFAULT_READABLE_FORMAT,
    timezone: str = "UTC",
) -> str:
    dt = parse_timestamp(value, input_type, fmt).astimezone(_zone(timezone))

    if output_type == "unix":
        return str(int(dt.timestamp()))
    if output_type == "iso":
        if timezone in (None, "", "UTC"):
            return _iso(dt)
        return dt.isoformat(timespec="milliseconds")
    if output_type == "readable":
        return dt.strftime(to_strftime(fmt))
    raise ToolInputError(f"Unknown output type: {output_type}")


def adjust_timestamp(
    value: str,
    operation: str = "add",
    unit: str = "days",
    amount: int = 0,
    timezone: str = "UTC",
) -> str:
    """
    Add or subtract a duration in wall-clock time of the given timezone;
    the result is an ISO-8601 UTC string.
    """
    try:
        amount = int(amount)
    except (TypeError, ValueError):
        raise ToolInputError("Please enter a valid input and adjustment value.")
    if amount <= 0:
        raise ToolInputError("Please enter a valid input and adjustment value.")
    if unit not in ("seconds", "minutes", "hours", "days", "weeks", "months", "years"):
        raise ToolInputError(f"Unknown unit: {unit}")
    if operation not in ("add", "sub"):
        raise ToolInputError(f"Unknown operation: {operation}")

    zone = _zone(timezone)
    local = _parse_iso(value).astimezone(zone).replace(tzinfo=None)
    delta = relativedelta(**{unit: amount})
    local = local + delta if operation == "add" else local - delta
    return _iso(local.replace(tzinfo=zone))


def timestamp_difference(start: str, end: str, unit: str = "days") -> int:
    if not (start or "").strip() or not (end or "").strip():
        raise ToolInputError("Please enter start and end dates.")
    if unit not in DURATION_UNITS:
        raise ToolInputError(f"Unknown unit: {unit}")

    seconds = (_parse_iso(end) - _parse_iso(start)).total_seconds()
    return int(seconds / DURATION_UNITS[unit])
