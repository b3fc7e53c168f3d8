# smartshop/models/product.py

"""Canonical product models shared by fetchers, aggregator and store."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


@dataclass
class Rating:
    """Unified rating shape: ``rate`` in [0, 5], ``count`` >= 0."""

    rate: float = 0.0
    count: int = 0

    def __post_init__(self) -> None:
        self.rate = min(max(float(self.rate), 0.0), 5.0)
        self.count = max(int(self.count), 0)


@dataclass
class Product:
    """A single catalog listing normalised from any upstream source."""

    id: str
    title: str
    price: float
    original_price: float = 0.0
    category: str = ""
    description: str = ""
    rating: Rating = field(default_factory=Rating)
    brand: str | None = None
    image: str = ""
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-ready dict."""
        return asdict(self)


class Availability(str, Enum):
    """Stock status of a synthesised store offer."""

    IN_STOCK = "In Stock"
    LIMITED = "Limited Stock"


@dataclass
class StoreOffer:
    """One retailer's synthesised price for a product."""

    store: str
    price: float
    availability: Availability
    shipping: str
    rating: float


@dataclass
class EnrichedProduct(Product):
    """A Product carrying its multi-store price comparison."""

    store_offers: list[StoreOffer] = field(
        default_factory=lambda: list[StoreOffer]()
    )
    best_deal: StoreOffer | None = None
    discount: int = 0
    savings: float = 0.0

    @property
    def total_stores(self) -> int:
        """Number of stores in the comparison."""
        return len(self.store_offers)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-ready dict (enums as their values)."""
        data = asdict(self)
        for offer in data["store_offers"]:
            offer["availability"] = Availability(
                offer["availability"]
            ).value
        if data["best_deal"] is not None:
            data["best_deal"]["availability"] = Availability(
                data["best_deal"]["availability"]
            ).value
        return data
