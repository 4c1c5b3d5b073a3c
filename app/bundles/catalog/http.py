"""HTTP adapter for a remote catalog/inventory API.

Expected contract::

    GET {base_url}/variants?ids=v1,v2
    200 [{"id": "v1", "price": 3000, "stock_on_hand": 4,
          "enabled": true, "deleted": false, "name": "..."}]
"""

from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from app.bundles.catalog.gateway import CatalogGateway, VariantSnapshot
from app.core.exceptions import AvailabilityDegradedError

logger = structlog.get_logger(__name__)


class HttpCatalog(CatalogGateway):
    """Catalog gateway backed by httpx.

    Any transport error, timeout, non-2xx answer or malformed payload is
    reported as ``AvailabilityDegradedError`` so read paths can fall back
    to stale data.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def get_variants(self, variant_ids: Iterable[str]) -> dict[str, VariantSnapshot]:
        ids = sorted(set(variant_ids))
        if not ids:
            return {}

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(f"{self.base_url}/variants", params={"ids": ",".join(ids)})
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "catalog_http_error",
                status=e.response.status_code,
                variant_count=len(ids),
            )
            raise AvailabilityDegradedError(
                f"Catalog answered with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("catalog_unreachable", error=str(e), variant_count=len(ids))
            raise AvailabilityDegradedError(f"Catalog unreachable: {e}") from e
        except ValueError as e:
            raise AvailabilityDegradedError("Catalog returned malformed JSON") from e

        return {snap.variant_id: snap for snap in self._parse(payload)}

    @staticmethod
    def _parse(payload: Any) -> list[VariantSnapshot]:
        if not isinstance(payload, list):
            raise AvailabilityDegradedError("Catalog returned an unexpected payload")
        try:
            return [
                VariantSnapshot(
                    variant_id=str(row["id"]),
                    price=int(row["price"]),
                    stock_on_hand=int(row.get("stock_on_hand", 0)),
                    enabled=bool(row.get("enabled", True)),
                    deleted=bool(row.get("deleted", False)),
                    name=str(row.get("name", "")),
                )
                for row in payload
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise AvailabilityDegradedError("Catalog returned an unexpected payload") from e
