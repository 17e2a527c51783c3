"""Source adapters and the sync pipeline that drives them.

This package provides:
- Base adapter class and the normalized product structures
- The remote scraping service client
- Record format detection and normalization
- Factory mapping a brand's source_kind to an adapter
"""

from .base import BaseSourceAdapter, NormalizedProduct, ProductVariant, RawRecord
from .factory import AdapterFactory, adapter_factory, get_adapter_factory

__all__ = [
    # Base classes
    "BaseSourceAdapter",
    # Data structures
    "NormalizedProduct",
    "ProductVariant",
    "RawRecord",
    # Factory
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
