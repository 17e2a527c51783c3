"""Text, price and URL normalization helpers shared by adapters."""

import html
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urljoin, urlparse, urlunparse

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9]")

TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
})


def clean_text(value: Any) -> str:
    """Strip HTML tags, unescape entities and collapse whitespace."""
    if value is None:
        return ""
    text = html.unescape(_TAG_RE.sub(" ", str(value)))
    return _WS_RE.sub(" ", text).strip()


def slugify(value: str, max_length: int = 50) -> str:
    """Lowercase and map every character outside [a-z0-9] to '-'."""
    return _SLUG_RE.sub("-", value.lower())[:max_length]


class PriceNormalizer:
    """Price parsing utilities."""

    CENTS = Decimal("100")

    @staticmethod
    def clean_price_string(raw: Any) -> Optional[Decimal]:
        """Parse a price value and extract its numeric part.

        Handles various formats:
        - "$12.99" -> 12.99
        - "1,234.50 USD" -> 1234.50
        - 49 -> 49

        Returns:
            Decimal price value, or None if parsing fails
        """
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, (int, float, Decimal)):
            return Decimal(str(raw))

        cleaned = str(raw).replace(",", "")
        match = re.search(r"\d+(?:\.\d+)?", cleaned)
        if not match:
            return None
        try:
            return Decimal(match.group(0))
        except InvalidOperation:
            return None

    @classmethod
    def from_minor_units(cls, value: Any) -> Optional[Decimal]:
        """Convert an integer minor-unit amount (cents) into a decimal price."""
        amount = cls.clean_price_string(value)
        if amount is None:
            return None
        return (amount / cls.CENTS).quantize(Decimal("0.01"))

    @classmethod
    def to_minor_units(cls, value: Any) -> Optional[int]:
        """Convert a decimal price ("89.00") into integer minor units (8900)."""
        amount = cls.clean_price_string(value)
        if amount is None:
            return None
        return int((amount * cls.CENTS).quantize(Decimal("1")))


def absolute_url(url: Optional[str], base_url: Optional[str]) -> Optional[str]:
    """Resolve protocol-relative and relative URLs against a base."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("//"):
        return "https:" + url
    if base_url and not urlparse(url).scheme:
        return urljoin(base_url.rstrip("/") + "/", url.lstrip("/"))
    return url


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters and the fragment."""
    if not url:
        return url

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)
    filtered_params = {k: v for k, v in query_params.items() if k not in TRACKING_PARAMS}
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, "")
    )
