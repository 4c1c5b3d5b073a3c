"""Read-only port to the catalog/inventory system.

The engine never owns product data. It asks a ``CatalogGateway`` for a
snapshot of the variants a bundle references and treats anything absent
from the answer as missing.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class VariantSnapshot:
    """Point-in-time view of one catalog variant."""

    variant_id: str
    price: int  # In grosz
    stock_on_hand: int
    enabled: bool = True
    deleted: bool = False
    name: str = ""

    @property
    def is_sellable(self) -> bool:
        return self.enabled and not self.deleted


class CatalogGateway(ABC):
    """Catalog collaborator consumed by availability and pricing checks."""

    @abstractmethod
    def get_variants(self, variant_ids: Iterable[str]) -> dict[str, VariantSnapshot]:
        """Fetch snapshots for ``variant_ids``.

        Returns:
            Mapping of variant id to snapshot. Unknown ids are omitted.

        Raises:
            AvailabilityDegradedError: The catalog could not be reached or
                answered with an error.
        """
