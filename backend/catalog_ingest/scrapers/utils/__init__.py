"""Scraper utilities for retries and data normalization."""

from .normalizer import (
    PriceNormalizer,
    absolute_url,
    clean_text,
    normalize_url,
    slugify,
)
from .retry import http_retrying, is_transient_error, send_with_retry


__all__ = [
    # Normalization
    "PriceNormalizer",
    "absolute_url",
    "clean_text",
    "normalize_url",
    "slugify",
    # Retries
    "http_retrying",
    "is_transient_error",
    "send_with_retry",
]
