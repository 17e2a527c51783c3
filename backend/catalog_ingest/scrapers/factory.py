"""Factory mapping a brand's source_kind onto an adapter instance."""

from typing import Dict, Optional, Type

import httpx
import structlog

from catalog_ingest.core.exceptions import PreconditionError
from catalog_ingest.scrapers.adapters import (
    BrandApiAdapter,
    GenericListingAdapter,
    NativeCatalogAdapter,
    RemoteScrapeAdapter,
)
from catalog_ingest.scrapers.base import BaseSourceAdapter

logger = structlog.get_logger(__name__)

FALLBACK_SOURCE_KIND = GenericListingAdapter.source_kind


class AdapterFactory:
    """Registry of adapter classes keyed by source_kind.

    Selection is a plain lookup; adding a brand only needs data
    (source_kind + source_config), never a code change.
    """

    def __init__(self):
        self._adapter_registry: Dict[str, Type[BaseSourceAdapter]] = {}
        for adapter_class in (NativeCatalogAdapter, RemoteScrapeAdapter, BrandApiAdapter, GenericListingAdapter):
            self.register_adapter(adapter_class.source_kind, adapter_class)

    def register_adapter(self, source_kind: str, adapter_class: Type[BaseSourceAdapter]) -> None:
        """Register an adapter class for a source kind.

        Args:
            source_kind: e.g. "native"
            adapter_class: Adapter class (must inherit from BaseSourceAdapter)
        """
        if not issubclass(adapter_class, BaseSourceAdapter):
            raise ValueError(f"Adapter class must inherit from BaseSourceAdapter: {adapter_class}")
        self._adapter_registry[source_kind] = adapter_class
        logger.debug("adapter_registered", source_kind=source_kind, adapter=adapter_class.__name__)

    def adapter_class_for(self, source_kind: Optional[str]) -> Type[BaseSourceAdapter]:
        """Resolve the adapter class; unconfigured brands get the generic listing adapter.

        Raises:
            PreconditionError: If source_kind names no registered adapter
        """
        kind = source_kind or FALLBACK_SOURCE_KIND
        adapter_class = self._adapter_registry.get(kind)
        if adapter_class is None:
            raise PreconditionError(f"No adapter registered for source kind '{source_kind}'")
        return adapter_class

    def create_adapter(
        self,
        source_kind: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> BaseSourceAdapter:
        adapter = self.adapter_class_for(source_kind)(http_client=http_client)
        logger.debug("adapter_created", source_kind=adapter.source_kind)
        return adapter

    def get_registered_kinds(self) -> list[str]:
        return list(self._adapter_registry.keys())


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
