import hashlib
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from django.http import HttpRequest
from django.utils import timezone as django_timezone
from django.utils.dateparse import parse_datetime

from django_shopsync.constants import ZERO_AMOUNT

MONEY_LIMIT = Decimal(10) ** 12


def safe_decimal(value: Any, default: Decimal | None = Decimal("0")) -> Decimal | None:
    """
    Safely convert a value to Decimal.

    Args:
        value: Value to convert (int, float, str, Decimal, None)
        default: Default value if conversion fails or value is None

    Returns:
        Decimal value
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (ValueError, TypeError, ArithmeticError):
        return default


def storable_amount(value: Any) -> Decimal | None:
    """
    Parse an amount that fits the money columns (14 digits, 2 decimal places).

    Non-finite and out-of-range amounts are treated as missing.
    """
    amount = safe_decimal(value, default=None)
    if amount is None or not amount.is_finite():
        return None
    # Anything that rounds up to 10**12 at two places overflows the column
    if abs(amount) >= MONEY_LIMIT - Decimal("0.005"):
        return None
    return amount


def money(value: Any) -> str:
    """Money in wire form; missing or unstorable amounts become ``"0.00"``."""
    amount = storable_amount(value)
    if amount is None:
        return ZERO_AMOUNT
    return str(amount)


def money_or_none(value: Any) -> str | None:
    amount = storable_amount(value)
    return None if amount is None else str(amount)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 timestamp from a webhook payload.

    Naive values are taken as UTC. Unparsable values yield None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = parse_datetime(str(value))
        except ValueError:
            return None
        if parsed is None:
            return None
    if django_timezone.is_naive(parsed):
        parsed = django_timezone.make_aware(parsed, timezone.utc)
    return parsed


def normalize_shop_domain(domain: str | None) -> str:
    """Strip scheme, trailing slash and case from a shop domain."""
    if not domain:
        return ""
    domain = str(domain).strip().lower()
    for scheme in ("https://", "http://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme) :]
    return domain.rstrip("/")


def get_remote_ip(request: HttpRequest) -> str | None:
    """
    Get the client IP address from the request.

    Args:
        request: Django HTTP request

    Returns:
        IP address string, or None when unavailable
    """
    # Check for forwarded IP (when behind proxy/load balancer)
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    return request.META.get("REMOTE_ADDR") or None


def body_hash(raw_body: bytes) -> str:
    return hashlib.sha256(raw_body).hexdigest()


def truncate(value: str | None, max_length: int | None) -> tuple[str, bool]:
    """Return ``(text, truncated)`` with text cut to ``max_length`` characters."""
    text = value or ""
    if max_length is None or len(text) <= max_length:
        return text, False
    return text[:max_length], True
