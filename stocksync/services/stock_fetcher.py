"""Fetch an advertiser's full stock listing, one page at a time."""

import logging
import math
from dataclasses import dataclass, field

from pydantic import ValidationError as SchemaError

from stocksync.services.errors import ProviderError
from stocksync.services.provider_client import ProviderApiClient
from stocksync.services.provider_schema import StockPage

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass
class StockSnapshot:
    vehicles: list[dict] = field(default_factory=list)
    total_results: int = 0
    pages_fetched: int = 0
    total_pages: int = 0
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.error is None


class StockFetcher:
    """Sequential pager over /stock. Pages are never fetched concurrently."""

    def __init__(self, client: ProviderApiClient, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    def fetch_all_vehicles(self, advertiser_id: str) -> list[dict]:
        return self.fetch_snapshot(advertiser_id).vehicles

    def fetch_snapshot(self, advertiser_id: str) -> StockSnapshot:
        """Page 1 failures propagate. Later page failures end the loop with a partial snapshot."""
        first = StockPage.model_validate(self.client.get_stock_page(advertiser_id, 1, self.page_size))
        total_pages = max(1, math.ceil(first.total_results / self.page_size))
        snapshot = StockSnapshot(
            vehicles=list(first.results),
            total_results=first.total_results,
            pages_fetched=1,
            total_pages=total_pages,
        )
        logger.info(
            "Advertiser %s has %d vehicles across %d page(s)",
            advertiser_id, first.total_results, total_pages,
        )

        for page in range(2, total_pages + 1):
            try:
                data = StockPage.model_validate(self.client.get_stock_page(advertiser_id, page, self.page_size))
            except (ProviderError, SchemaError) as exc:
                snapshot.error = f"Stock page {page}/{total_pages} failed: {exc}"
                logger.warning(
                    "Stopping stock fetch at page %d/%d, keeping %d vehicles: %s",
                    page, total_pages, len(snapshot.vehicles), exc,
                )
                break
            snapshot.vehicles.extend(data.results)
            snapshot.pages_fetched += 1

        logger.info("Fetched %d of %d vehicles", len(snapshot.vehicles), snapshot.total_results)
        return snapshot
