"""Human-readable byte sizes for leak reports."""

import math
from datetime import datetime, timezone
from numbers import Integral, Real

ZERO_SIZE = "0 Bytes"

# Base-1024 units, smallest first
SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")


def format_bytes(value, decimals: int = 2) -> str:
    """Format a byte count as a size string such as ``"1.5 KB"``.

    Zero, negative, non-numeric and non-finite inputs all return
    ``"0 Bytes"``. Values beyond the yottabyte range stay in ``YB``.
    Trailing zeros are dropped, so 1024 renders as ``"1 KB"``.
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        return ZERO_SIZE

    places = max(int(decimals), 0)

    if isinstance(value, Integral):
        number = int(value)
        if number <= 0:
            return ZERO_SIZE
        index = _unit_index((number.bit_length() - 1) // 10)
        text = _scaled_int(number, index, places)
    else:
        number = float(value)
        if not math.isfinite(number) or number <= 0:
            return ZERO_SIZE
        # log2 keeps exact powers of 1024 on their unit
        index = _unit_index(int(math.floor(math.log2(number) / 10)))
        text = f"{number / 1024 ** index:.{places}f}"

    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[index]}"


def _unit_index(index: int) -> int:
    return min(max(index, 0), len(SIZE_UNITS) - 1)


def _scaled_int(number: int, index: int, places: int) -> str:
    """Divide by 1024**index in integer arithmetic, rounding half up."""
    denominator = 1024 ** index
    quotient, remainder = divmod(number * 10 ** places, denominator)
    if 2 * remainder >= denominator:
        quotient += 1
    if not places:
        return str(quotient)
    digits = str(quotient).rjust(places + 1, "0")
    return f"{digits[:-places]}.{digits[-places:]}"


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 with milliseconds and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
