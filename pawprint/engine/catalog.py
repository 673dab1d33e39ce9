"""
pawprint.engine.catalog — Catalogue provider
=============================================

Maps an item slug to its price, category and display payload.  The shop,
purchase coordinator and equip manager only depend on the
:class:`CatalogProvider` protocol; :class:`StaticCatalog` is the in-process
implementation used in production and tests.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from pawprint.database.models import ItemCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """One purchasable (or free) cosmetic."""

    slug: str
    name: str
    category: ItemCategory
    price: int
    description: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_free(self) -> bool:
        return self.price == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "category": self.category.value,
            "price": self.price,
            "description": self.description,
            "payload": dict(self.payload),
        }


class CatalogProvider(Protocol):
    """Read-only lookup of catalogue items by slug."""

    def get(self, slug: str) -> CatalogItem | None: ...

    def items(self, category: ItemCategory | None = None) -> list[CatalogItem]: ...


class StaticCatalog:
    """Catalogue held in memory, keyed by slug."""

    def __init__(self, items: Iterable[CatalogItem]) -> None:
        self._items: dict[str, CatalogItem] = {}
        for item in items:
            if item.slug in self._items:
                raise ValueError(f"Duplicate catalogue slug: {item.slug!r}")
            self._items[item.slug] = item

    def get(self, slug: str) -> CatalogItem | None:
        return self._items.get(slug)

    def items(self, category: ItemCategory | None = None) -> list[CatalogItem]:
        if category is None:
            return list(self._items.values())
        return [i for i in self._items.values() if i.category == category]

    def __len__(self) -> int:
        return len(self._items)


# ---------------------------------------------------------------------------
# Default catalogue
# ---------------------------------------------------------------------------
def _character(slug: str, name: str, price: int, description: str, image: str) -> CatalogItem:
    return CatalogItem(
        slug=slug,
        name=name,
        category=ItemCategory.CHARACTER,
        price=price,
        description=description,
        payload={"imageUrl": f"/icons/minimi/{image}", "displayScale": 1.0},
    )


def _accessory(slug: str, name: str, price: int, description: str) -> CatalogItem:
    return CatalogItem(
        slug=slug,
        name=name,
        category=ItemCategory.ACCESSORY,
        price=price,
        description=description,
        payload={"imageUrl": f"/icons/minimi/accessories/{slug}.png"},
    )


def _background(slug: str, name: str, price: int, description: str, css: str) -> CatalogItem:
    return CatalogItem(
        slug=slug,
        name=name,
        category=ItemCategory.BACKGROUND,
        price=price,
        description=description,
        payload={"cssBackground": css},
    )


DEFAULT_ITEMS: tuple[CatalogItem, ...] = (
    # Characters
    _character("maltipoo", "Maltipoo", 100, "Curly cream-coloured maltipoo", "maltipoo.png"),
    _character("yorkshire", "Yorkshire Terrier", 100, "Small and brave yorkie", "yorkshire.png"),
    _character("golden_retriever", "Golden Retriever", 100, "Bright, friendly golden", "golden.png"),
    # Accessories
    _accessory("party_hat", "Party Hat", 0, "Free starter hat"),
    _accessory("red_ribbon", "Red Ribbon", 30, "A neat red bow"),
    _accessory("sunglasses", "Sunglasses", 50, "Too cool for the dog park"),
    _accessory("flower_crown", "Flower Crown", 80, "Spring flowers, woven"),
    _accessory("scarf", "Knitted Scarf", 60, "Warm for winter walks"),
    # Background themes
    _background(
        "default_sky", "Clear Sky", 0, "Default theme: blue sky over green fields",
        "linear-gradient(180deg, #87CEEB 0%, #E0F7FF 40%, #A8E6CF 75%, #228B22 100%)",
    ),
    _background(
        "sunset_beach", "Sunset Beach", 150, "A warm sunset over the sea",
        "linear-gradient(180deg, #FF6B6B 0%, #FFA07A 25%, #FFD700 50%, #DEB887 80%)",
    ),
    _background(
        "cherry_blossom", "Cherry Blossom", 200, "Pale pink petals in spring",
        "linear-gradient(180deg, #FFB7C5 0%, #FFE4E1 60%, #90EE90 100%)",
    ),
    _background(
        "starry_night", "Starry Night", 200, "A sky full of stars",
        "linear-gradient(180deg, #0B1026 0%, #2B2F77 60%, #141852 100%)",
    ),
    _background(
        "cloud_kingdom", "Cloud Kingdom", 150, "Drifting above the clouds",
        "linear-gradient(180deg, #E6F0FF 0%, #FFFFFF 50%, #D6E6FF 100%)",
    ),
    _background(
        "meadow", "Meadow", 150, "An endless green meadow",
        "linear-gradient(180deg, #B4E7F8 0%, #C8F7C5 50%, #4CAF50 100%)",
    ),
    _background(
        "rainbow_bridge", "Rainbow Bridge", 300, "A rainbow lit with warm light",
        "linear-gradient(180deg, #FFDEE9 0%, #B5FFFC 50%, #FFF6B7 100%)",
    ),
    _background(
        "winter_snow", "Winter Snow", 200, "Fresh snow on a quiet field",
        "linear-gradient(180deg, #DDEEFF 0%, #FFFFFF 60%, #E8F4FF 100%)",
    ),
)

_default_catalog: StaticCatalog | None = None


def get_default_catalog() -> StaticCatalog:
    """Return the module-level catalogue (built on first use)."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = StaticCatalog(DEFAULT_ITEMS)
        logger.debug("Catalogue loaded with %d items", len(_default_catalog))
    return _default_catalog
