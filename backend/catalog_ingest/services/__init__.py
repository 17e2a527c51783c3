"""Services for classification and catalog writes."""

from catalog_ingest.services.product_service import ProductService, UpsertResult
from catalog_ingest.services.taxonomy import TaxonomyCategory, TaxonomyClassifier, get_classifier

__all__ = [
    "ProductService",
    "UpsertResult",
    "TaxonomyCategory",
    "TaxonomyClassifier",
    "get_classifier",
]
