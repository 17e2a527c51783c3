"""Keyword-based product classification into the Shopify product taxonomy.

Each category owns a list of lowercase substring patterns. Categories are
tried in descending order of their longest pattern so that specific
categories ("mini dress") win over broad fallbacks ("dress").
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from catalog_ingest.scrapers.base import NormalizedProduct

logger = structlog.get_logger(__name__)

TAXONOMY_GID_PREFIX = "gid://shopify/TaxonomyCategory/"
PATH_SEPARATOR = " > "


CATEGORY_PATTERNS: dict[str, list[str]] = {
    # Dresses
    "Mini Dresses": ["mini dress", "mini-dress", "short dress"],
    "Midi Dresses": ["midi dress", "midi-dress", "mid dress", "mid-length dress"],
    "Maxi Dresses": ["maxi dress", "maxi-dress", "long dress", "floor-length dress"],
    "Casual Dresses": ["casual dress", "day dress", "sundress", "sun dress"],
    "Cocktail Dresses": ["cocktail dress", "party dress", "evening dress"],
    "Slip Dresses": ["slip dress", "satin dress", "silky dress"],
    "Wrap Dresses": ["wrap dress", "faux wrap"],
    "Shirt Dresses": ["shirt dress", "shirtdress"],
    "Dresses": ["dress", "frock"],

    # Tops
    "Tank Tops": ["tank top", "tank", "cami", "camisole"],
    "T-Shirts": ["t-shirt", "tee", "t shirt", "tshirt"],
    "Blouses": ["blouse", "button-up", "button up", "button down"],
    "Crop Tops": ["crop top", "cropped top", "crop tee"],
    "Sweaters": ["sweater", "pullover", "jumper", "knit top"],
    "Cardigans": ["cardigan", "cardi"],
    "Sweatshirts & Hoodies": ["sweatshirt", "hoodie", "hooded"],
    "Bodysuits": ["bodysuit", "body suit", "leotard"],
    "Tube Tops": ["tube top", "bandeau"],
    "Tops": ["top", "shirt"],

    # Pants
    "Jeans": ["jean", "denim"],
    "Cargo Pants": ["cargo pant", "cargo trouser"],
    "Chinos": ["chino"],
    "Joggers": ["jogger"],
    "Leggings": ["legging", "tight"],
    "Sweatpants": ["sweatpant", "track pant"],
    "Trousers": ["trouser", "slack"],
    "Wide Leg Pants": ["wide leg", "wide-leg"],
    "Pants": ["pant", "bottom"],

    # Shorts & skirts
    "Shorts": ["short", "bermuda"],
    "Mini Skirts": ["mini skirt", "short skirt"],
    "Midi Skirts": ["midi skirt", "mid skirt"],
    "Maxi Skirts": ["maxi skirt", "long skirt"],
    "Skirts": ["skirt"],

    # One-pieces
    "Jumpsuits": ["jumpsuit", "jump suit"],
    "Rompers": ["romper", "playsuit"],

    # Outerwear
    "Jackets": ["jacket", "blazer"],
    "Coats": ["coat", "overcoat", "trench"],
    "Vests": ["vest", "gilet"],
    "Parkas": ["parka"],
    "Puffer Jackets": ["puffer", "padded jacket", "quilted jacket"],

    # Swimwear
    "Bikinis": ["bikini"],
    "Bikini Tops": ["bikini top", "swim top"],
    "Bikini Bottoms": ["bikini bottom", "swim bottom"],
    "One-Piece Swimsuits": ["one piece swim", "one-piece swim", "swimsuit"],
    "Tankinis": ["tankini"],
    "Swim Cover-Ups": ["cover up", "coverup", "beach cover", "kaftan"],
    "Rash Guards": ["rash guard", "rashguard", "swim shirt"],

    # Activewear
    "Sports Bras": ["sports bra", "sport bra"],
    "Athletic Leggings": ["athletic legging", "yoga pant", "workout legging"],
    "Athletic Shorts": ["athletic short", "bike short", "running short"],
    "Athletic Tops": ["athletic top", "workout top", "gym top"],

    # Sleepwear & loungewear
    "Pajama Sets": ["pajama set", "pj set", "pyjama set"],
    "Pajama Tops": ["pajama top", "sleep top"],
    "Pajama Bottoms": ["pajama bottom", "sleep pant"],
    "Robes": ["robe", "dressing gown"],
    "Loungewear Sets": ["lounge set", "co-ord set", "matching set"],

    # Bags
    "Handbags": ["handbag", "purse", "tote", "shoulder bag"],
    "Crossbody Bags": ["crossbody", "cross body"],
    "Clutches": ["clutch"],

    # Accessories
    "Belts": ["belt"],
    "Hats": ["hat", "cap", "beanie"],
    "Sunglasses": ["sunglass"],

    # Jewelry
    "Necklaces": ["necklace", "chain", "pendant"],
    "Earrings": ["earring"],
    "Bracelets": ["bracelet", "bangle"],
    "Rings": ["ring"],

    "Scarves": ["scarf", "shawl"],
}

TAXONOMY_NODES: dict[str, str] = {
    "Mini Dresses": "aa-1-4-1",
    "Midi Dresses": "aa-1-4-2",
    "Maxi Dresses": "aa-1-4-3",
    "Casual Dresses": "aa-1-4-4",
    "Cocktail Dresses": "aa-1-4-5",
    "Slip Dresses": "aa-1-4-8",
    "Wrap Dresses": "aa-1-4-9",
    "Shirt Dresses": "aa-1-4-7",
    "Dresses": "aa-1-4",

    "Tank Tops": "aa-1-13-11",
    "T-Shirts": "aa-1-13-12",
    "Blouses": "aa-1-13-1",
    "Crop Tops": "aa-1-13-4",
    "Sweaters": "aa-1-13-10",
    "Cardigans": "aa-1-13-2",
    "Sweatshirts & Hoodies": "aa-1-13-9",
    "Bodysuits": "aa-1-13-13",
    "Tube Tops": "aa-1-13-14",
    "Tops": "aa-1-13",

    "Jeans": "aa-1-7-2",
    "Cargo Pants": "aa-1-7-4",
    "Chinos": "aa-1-7-5",
    "Joggers": "aa-1-7-1",
    "Leggings": "aa-1-7-3",
    "Sweatpants": "aa-1-7-7",
    "Trousers": "aa-1-7-8",
    "Wide Leg Pants": "aa-1-7-9",
    "Pants": "aa-1-7",

    "Shorts": "aa-1-8",
    "Mini Skirts": "aa-1-9-1",
    "Midi Skirts": "aa-1-9-2",
    "Maxi Skirts": "aa-1-9-3",
    "Skirts": "aa-1-9",

    "Jumpsuits": "aa-1-5-1",
    "Rompers": "aa-1-5-2",

    "Jackets": "aa-1-6-1",
    "Coats": "aa-1-6-2",
    "Vests": "aa-1-6-4",
    "Parkas": "aa-1-6-3",
    "Puffer Jackets": "aa-1-6-5",

    "Bikinis": "aa-1-12-1",
    "Bikini Tops": "aa-1-12-1-1",
    "Bikini Bottoms": "aa-1-12-1-2",
    "One-Piece Swimsuits": "aa-1-12-2",
    "Tankinis": "aa-1-12-3",
    "Swim Cover-Ups": "aa-1-12-4",
    "Rash Guards": "aa-1-12-5",

    "Sports Bras": "aa-1-1-6",
    "Athletic Leggings": "aa-1-1-1-2",
    "Athletic Shorts": "aa-1-1-1-3",
    "Athletic Tops": "aa-1-1-2",

    "Pajama Sets": "aa-1-10-1",
    "Pajama Tops": "aa-1-10-2",
    "Pajama Bottoms": "aa-1-10-3",
    "Robes": "aa-1-10-4",
    "Loungewear Sets": "aa-1-10-5",

    "Handbags": "aa-2-1-1",
    "Crossbody Bags": "aa-2-1-2",
    "Clutches": "aa-2-1-3",

    "Belts": "aa-2-2",
    "Hats": "aa-2-3",
    "Sunglasses": "aa-2-4",

    "Necklaces": "aa-2-5-1",
    "Earrings": "aa-2-5-2",
    "Bracelets": "aa-2-5-3",
    "Rings": "aa-2-5-4",

    "Scarves": "aa-2-6",
}

TAXONOMY_IDS: dict[str, str] = {
    name: TAXONOMY_GID_PREFIX + node for name, node in TAXONOMY_NODES.items()
}

_CLOTHING = "Apparel & Accessories > Clothing"
_ACCESSORIES = "Apparel & Accessories > Accessories"

TAXONOMY_PATHS: dict[str, str] = {
    "Mini Dresses": f"{_CLOTHING} > Dresses > Mini Dresses",
    "Midi Dresses": f"{_CLOTHING} > Dresses > Midi Dresses",
    "Maxi Dresses": f"{_CLOTHING} > Dresses > Maxi Dresses",
    "Casual Dresses": f"{_CLOTHING} > Dresses > Casual Dresses",
    "Cocktail Dresses": f"{_CLOTHING} > Dresses > Cocktail Dresses",
    "Slip Dresses": f"{_CLOTHING} > Dresses > Slip Dresses",
    "Wrap Dresses": f"{_CLOTHING} > Dresses > Wrap Dresses",
    "Shirt Dresses": f"{_CLOTHING} > Dresses > Shirt Dresses",
    "Dresses": f"{_CLOTHING} > Dresses",

    "Tank Tops": f"{_CLOTHING} > Tops > Tank Tops",
    "T-Shirts": f"{_CLOTHING} > Tops > T-Shirts",
    "Blouses": f"{_CLOTHING} > Tops > Blouses",
    "Crop Tops": f"{_CLOTHING} > Tops > Crop Tops",
    "Sweaters": f"{_CLOTHING} > Tops > Sweaters",
    "Cardigans": f"{_CLOTHING} > Tops > Cardigans",
    "Sweatshirts & Hoodies": f"{_CLOTHING} > Tops > Sweatshirts & Hoodies",
    "Bodysuits": f"{_CLOTHING} > Tops > Bodysuits",
    "Tube Tops": f"{_CLOTHING} > Tops > Tube Tops",
    "Tops": f"{_CLOTHING} > Tops",

    "Jeans": f"{_CLOTHING} > Pants > Jeans",
    "Cargo Pants": f"{_CLOTHING} > Pants > Cargo Pants",
    "Chinos": f"{_CLOTHING} > Pants > Chinos",
    "Joggers": f"{_CLOTHING} > Pants > Joggers",
    "Leggings": f"{_CLOTHING} > Pants > Leggings",
    "Sweatpants": f"{_CLOTHING} > Pants > Sweatpants",
    "Trousers": f"{_CLOTHING} > Pants > Trousers",
    "Wide Leg Pants": f"{_CLOTHING} > Pants > Wide Leg Pants",
    "Pants": f"{_CLOTHING} > Pants",

    "Shorts": f"{_CLOTHING} > Shorts",
    "Mini Skirts": f"{_CLOTHING} > Skirts > Mini Skirts",
    "Midi Skirts": f"{_CLOTHING} > Skirts > Midi Skirts",
    "Maxi Skirts": f"{_CLOTHING} > Skirts > Maxi Skirts",
    "Skirts": f"{_CLOTHING} > Skirts",

    "Jumpsuits": f"{_CLOTHING} > One-Pieces > Jumpsuits",
    "Rompers": f"{_CLOTHING} > One-Pieces > Rompers",

    "Jackets": f"{_CLOTHING} > Outerwear > Jackets",
    "Coats": f"{_CLOTHING} > Outerwear > Coats",
    "Vests": f"{_CLOTHING} > Outerwear > Vests",
    "Parkas": f"{_CLOTHING} > Outerwear > Parkas",
    "Puffer Jackets": f"{_CLOTHING} > Outerwear > Puffer Jackets",

    "Bikinis": f"{_CLOTHING} > Swimwear & Beachwear > Bikinis",
    "Bikini Tops": f"{_CLOTHING} > Swimwear & Beachwear > Bikinis > Bikini Tops",
    "Bikini Bottoms": f"{_CLOTHING} > Swimwear & Beachwear > Bikinis > Bikini Bottoms",
    "One-Piece Swimsuits": f"{_CLOTHING} > Swimwear & Beachwear > One-Piece Swimsuits",
    "Tankinis": f"{_CLOTHING} > Swimwear & Beachwear > Tankinis",
    "Swim Cover-Ups": f"{_CLOTHING} > Swimwear & Beachwear > Swim Cover-Ups",
    "Rash Guards": f"{_CLOTHING} > Swimwear & Beachwear > Rash Guards",

    "Sports Bras": f"{_CLOTHING} > Activewear > Sports Bras",
    "Athletic Leggings": f"{_CLOTHING} > Activewear > Activewear Pants > Leggings",
    "Athletic Shorts": f"{_CLOTHING} > Activewear > Activewear Pants > Shorts",
    "Athletic Tops": f"{_CLOTHING} > Activewear > Activewear Tops",

    "Pajama Sets": f"{_CLOTHING} > Sleepwear & Loungewear > Pajama Sets",
    "Pajama Tops": f"{_CLOTHING} > Sleepwear & Loungewear > Pajama Tops",
    "Pajama Bottoms": f"{_CLOTHING} > Sleepwear & Loungewear > Pajama Bottoms",
    "Robes": f"{_CLOTHING} > Sleepwear & Loungewear > Robes",
    "Loungewear Sets": f"{_CLOTHING} > Sleepwear & Loungewear > Loungewear Sets",

    "Handbags": f"{_ACCESSORIES} > Bags > Handbags",
    "Crossbody Bags": f"{_ACCESSORIES} > Bags > Crossbody Bags",
    "Clutches": f"{_ACCESSORIES} > Bags > Clutches",

    "Belts": f"{_ACCESSORIES} > Belts",
    "Hats": f"{_ACCESSORIES} > Hats",
    "Sunglasses": f"{_ACCESSORIES} > Sunglasses",

    "Necklaces": f"{_ACCESSORIES} > Jewelry > Necklaces",
    "Earrings": f"{_ACCESSORIES} > Jewelry > Earrings",
    "Bracelets": f"{_ACCESSORIES} > Jewelry > Bracelets",
    "Rings": f"{_ACCESSORIES} > Jewelry > Rings",

    "Scarves": f"{_ACCESSORIES} > Scarves",
}


@dataclass(frozen=True)
class TaxonomyCategory:
    """A resolved taxonomy node."""

    id: str
    name: str
    full_path: str
    level: int
    patterns: tuple[str, ...] = ()


def taxonomy_level(taxonomy_id: str) -> int:
    """Depth of a node, counted as the number of '-' in its id."""
    return taxonomy_id.count("-")


def ancestor_ids(taxonomy_id: str) -> list[str]:
    """The node itself followed by each ancestor, nearest first.

    ``gid://.../aa-1-4-1`` yields ``aa-1-4-1``, ``aa-1-4``, ``aa-1``, ``aa``
    (each with the gid prefix kept).
    """
    if not taxonomy_id:
        return []
    prefix, _, node = taxonomy_id.rpartition("/")
    prefix = f"{prefix}/" if prefix else ""
    parts = node.split("-")
    return [prefix + "-".join(parts[:i]) for i in range(len(parts), 0, -1)]


class TaxonomyClassifier:
    """Maps product text onto a taxonomy category by ordered keyword rules."""

    def __init__(
        self,
        patterns: Optional[dict[str, list[str]]] = None,
        taxonomy_ids: Optional[dict[str, str]] = None,
        taxonomy_paths: Optional[dict[str, str]] = None,
    ):
        self.patterns = CATEGORY_PATTERNS if patterns is None else patterns
        self.taxonomy_ids = TAXONOMY_IDS if taxonomy_ids is None else taxonomy_ids
        self.taxonomy_paths = TAXONOMY_PATHS if taxonomy_paths is None else taxonomy_paths

        # sorted() is stable, so ties keep declaration order
        self._ordered = sorted(
            (
                (name, tuple(p.lower() for p in pats))
                for name, pats in self.patterns.items()
                if pats
            ),
            key=lambda item: max(len(p) for p in item[1]),
            reverse=True,
        )

    @property
    def ordered_categories(self) -> list[str]:
        return [name for name, _ in self._ordered]

    def classify(
        self,
        name: Optional[str],
        type_hint: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[TaxonomyCategory]:
        """Return the best matching category, or None when unclassified."""
        if not name:
            return None

        search_text = f"{name} {type_hint or ''} {description or ''}".lower()

        for category_name, patterns in self._ordered:
            matched = next((p for p in patterns if p in search_text), None)
            if matched is None:
                continue

            taxonomy_id = self.taxonomy_ids.get(category_name)
            full_path = self.taxonomy_paths.get(category_name)
            if not taxonomy_id or not full_path:
                logger.warning("taxonomy_mapping_missing", category=category_name)
                continue

            return TaxonomyCategory(
                id=taxonomy_id,
                name=category_name,
                full_path=full_path,
                level=taxonomy_level(taxonomy_id),
                patterns=patterns,
            )

        return None

    def apply(self, product: NormalizedProduct) -> Optional[TaxonomyCategory]:
        """Classify a product and write the taxonomy fields onto it."""
        category = self.classify(product.name, product.product_type, product.description)
        product.taxonomy_id = category.id if category else None
        product.taxonomy_category_name = category.name if category else None
        product.taxonomy_full_path = category.full_path if category else None
        product.taxonomy_level = category.level if category else None
        return category

    def classify_products(self, products: Iterable[NormalizedProduct]) -> list[NormalizedProduct]:
        """Batch helper: classify every product in place and return them."""
        result = list(products)
        for product in result:
            self.apply(product)
        return result


_default_classifier: Optional[TaxonomyClassifier] = None


def get_classifier() -> TaxonomyClassifier:
    """Get the shared classifier built from the static tables."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = TaxonomyClassifier()
    return _default_classifier
