from decimal import Decimal, ROUND_HALF_EVEN, localcontext
from typing import Any, Optional

from .errors import ValidationError

_PERCENT_QUANT = Decimal("0.0001")


def format_units(value: int, decimals: int) -> str:
    """Render a base-unit integer as a decimal string without trailing zeros."""
    if decimals <= 0:
        return str(value)
    negative = value < 0
    s = str(abs(value))
    if len(s) <= decimals:
        s = "0." + "0" * (decimals - len(s)) + s
    else:
        s = s[: len(s) - decimals] + "." + s[len(s) - decimals :]
    s = s.rstrip("0").rstrip(".") or "0"
    if negative:
        s = "-" + s
    return s


def parse_units(text: Any, decimals: int, field: str = "amount") -> int:
    """Parse a non-negative decimal string into base units."""
    if isinstance(text, bool) or text is None:
        raise ValidationError(f"{field} must be a decimal number.")
    candidate = str(text).strip().replace("_", "")
    if candidate.startswith("+"):
        candidate = candidate[1:]
    if not candidate or candidate.startswith("-"):
        raise ValidationError(f"{field} must be a non-negative decimal number.")
    if "." in candidate:
        whole, frac = candidate.split(".", 1)
    else:
        whole, frac = candidate, ""
    if (whole and not whole.isdigit()) or (frac and not frac.isdigit()) or not (whole or frac):
        raise ValidationError(f"{field} must be a decimal number.")
    if len(frac) > decimals:
        raise ValidationError(f"{field} has more fractional digits than allowed ({decimals}).")
    whole_int = int(whole) if whole else 0
    frac_int = int(frac.ljust(decimals, "0")) if frac else 0
    return whole_int * (10**decimals) + frac_int


def parse_wei(value: Any, field: str = "value") -> int:
    """Parse a wei amount given as int, decimal string or 0x-prefixed hex."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer amount in wei.")
    if isinstance(value, int):
        ivalue = value
    else:
        candidate = str(value).strip().lower()
        try:
            ivalue = int(candidate, 16) if candidate.startswith("0x") else int(candidate, 10)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an integer amount in wei.") from exc
    if ivalue < 0:
        raise ValidationError(f"{field} must be non-negative.")
    return ivalue


def format_percentage(part: int, total: Optional[int]) -> Optional[str]:
    if not total:
        return None
    with localcontext() as ctx:
        ctx.prec = 100
        ratio = Decimal(part) / Decimal(total) * 100
        return str(ratio.quantize(_PERCENT_QUANT, rounding=ROUND_HALF_EVEN))
