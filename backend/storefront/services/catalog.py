# storefront/services/catalog.py
"""
Catalog Service
===============
Scraped product storage and cursor-based browsing.

Pages are keyset-paginated on the product id (descending): the cursor is
the last id of the previous page, so concatenating pages until
``next_cursor`` is None yields every product exactly once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from sqlalchemy import select, desc, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import NotFoundError, ValidationError
from storefront.models import ScrapedProduct
from storefront.services.pricing import display_price

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 48
MAX_PAGE_SIZE = 200

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def normalize_source_url(source_url: str) -> str:
    """Drop query and fragment so re-scrapes of the same page agree."""
    parts = urlsplit(source_url)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}{parts.path}".lower()
    return source_url.lower()


def product_id_for(source_url: str) -> str:
    """
    Stable product id from a source URL: djb2-xor over the UTF-16 code
    units of the normalized URL, as an unsigned 32-bit base-36 string.
    """
    normalized = normalize_source_url(source_url)
    encoded = normalized.encode("utf-16-le")
    h = 5381
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = _int32(_int32(_int32(h << 5) + h) ^ unit)
    return f"p_{_base36(h & 0xFFFFFFFF)}"


@dataclass
class ProductPage:
    products: List[ScrapedProduct]
    next_cursor: Optional[str]


class CatalogService:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_products_page(
        self,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
        active_only: bool = True,
    ) -> ProductPage:
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")

        query = select(ScrapedProduct).order_by(desc(ScrapedProduct.id))
        if active_only:
            query = query.where(ScrapedProduct.is_active.is_(True))
        if cursor:
            query = query.where(ScrapedProduct.id < cursor)
        query = query.limit(limit)

        result = await self.session.execute(query)
        products = list(result.scalars().all())

        # A full page means there might be more
        next_cursor = products[-1].id if len(products) == limit else None
        return ProductPage(products=products, next_cursor=next_cursor)

    async def get_product(self, product_id: str) -> ScrapedProduct:
        product = await self.session.get(ScrapedProduct, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def upsert_products(self, products: Iterable[Dict[str, Any]], job_id: Optional[str] = None) -> Dict[str, int]:
        """
        Save a scraped batch. Existing products keep their first scrape date.
        """
        added = 0
        updated = 0
        now = datetime.utcnow()
        pending: Dict[str, ScrapedProduct] = {}

        for data in products:
            source_url = data.get("source_url")
            if not source_url or not data.get("title"):
                raise ValidationError("Products need a title and source_url", field="source_url")

            # Rejects missing, negative and non-finite prices
            display_price(data.get("price"))

            product_id = product_id_for(source_url)
            fields = {k: v for k, v in data.items() if k in ScrapedProduct.__table__.c and k != "id"}
            fields["price"] = int(fields["price"])
            fields.setdefault("source_site", urlsplit(source_url).netloc or "unknown")
            fields.update({"is_active": True, "last_updated": now, "scraping_job_id": job_id})

            existing = pending.get(product_id) or await self.session.get(ScrapedProduct, product_id)
            if existing is None:
                pending[product_id] = ScrapedProduct(id=product_id, scraped_at=now, **fields)
                self.session.add(pending[product_id])
                added += 1
            else:
                fields.pop("scraped_at", None)
                for key, value in fields.items():
                    setattr(existing, key, value)
                updated += 1

        await self.session.flush()
        logger.info(f"Saved product batch: {added} new, {updated} updated")
        return {"added": added, "updated": updated}

    async def mark_inactive(self, product_ids: List[str]) -> int:
        """Soft delete products no longer listed on their source site."""
        if not product_ids:
            return 0
        result = await self.session.execute(
            update(ScrapedProduct)
            .where(ScrapedProduct.id.in_(product_ids))
            .values(is_active=False, last_updated=datetime.utcnow())
        )
        logger.info(f"Marked {result.rowcount} products inactive")
        return result.rowcount

    async def get_stats(self) -> Dict[str, Any]:
        total = (await self.session.execute(select(func.count(ScrapedProduct.id)))).scalar() or 0
        active_query = select(ScrapedProduct.availability, func.count(ScrapedProduct.id)).where(
            ScrapedProduct.is_active.is_(True)
        ).group_by(ScrapedProduct.availability)
        by_availability = {row[0]: row[1] for row in (await self.session.execute(active_query)).all()}
        last_scraped = (await self.session.execute(select(func.max(ScrapedProduct.scraped_at)))).scalar()

        return {
            "total_products": total,
            "active_products": sum(by_availability.values()),
            "in_stock_products": by_availability.get("in", 0),
            "out_of_stock_products": by_availability.get("out", 0),
            "last_scraped_at": last_scraped.isoformat() if last_scraped else None,
        }
