"""
Products API Router.

Storefront catalog browsing (public, cursor-paginated) and the admin
catalog maintenance endpoints fed by the scraper.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.models import AdminUser
from storefront.routers.dependencies import require_permission
from storefront.schemas import CamelModel
from storefront.services.catalog import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, CatalogService
from storefront.services.pricing import display_price
from storefront.services.reporting import ReportingService

router = APIRouter()
admin_router = APIRouter()


class ProductResponse(CamelModel):
    """A catalog product with its storefront price."""
    id: str
    title: str
    original_price: int
    display_price: int
    brand: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    source_url: str
    source_site: str
    availability: str
    is_active: bool
    scraped_at: Optional[datetime] = None

    @classmethod
    def from_product(cls, product) -> "ProductResponse":
        return cls(
            id=product.id,
            title=product.title,
            original_price=product.price,
            display_price=display_price(product.price),
            brand=product.brand,
            category=product.category,
            image_url=product.image_url,
            description=product.description,
            source_url=product.source_url,
            source_site=product.source_site,
            availability="out" if product.is_sold_out else product.availability,
            is_active=product.is_active,
            scraped_at=product.scraped_at,
        )


class ProductPageResponse(CamelModel):
    products: List[ProductResponse]
    next_cursor: Optional[str] = None


class PopularProductResponse(CamelModel):
    product_id: str
    title: str
    purchase_count: int
    total_quantity: int
    total_revenue: int
    image_url: Optional[str] = None
    source_url: Optional[str] = None


class ScrapedProductRequest(CamelModel):
    title: str
    price: float
    source_url: str
    source_site: Optional[str] = None
    brand: str = ""
    category: str = ""
    image_url: Optional[str] = None
    description: Optional[str] = None
    availability: str = "in"
    is_sold_out: bool = False


class ProductBatchRequest(CamelModel):
    products: List[ScrapedProductRequest]
    job_id: Optional[str] = None


class ProductBatchResponse(CamelModel):
    added: int
    updated: int


@router.get("", response_model=ProductPageResponse)
async def list_products(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    One page of products, newest id first. Pass ``nextCursor`` back as
    ``cursor`` to get the following page.
    """
    page = await CatalogService(db).get_products_page(limit=limit, cursor=cursor)
    return ProductPageResponse(
        products=[ProductResponse.from_product(p) for p in page.products],
        next_cursor=page.next_cursor,
    )


@router.get("/popular", response_model=List[PopularProductResponse])
async def popular_products(
    limit: int = Query(50, ge=1, le=200),
    admin: AdminUser = Depends(require_permission("products.popularity.view")),
    db: AsyncSession = Depends(get_db),
):
    """Products ranked by how often they were ordered."""
    ranked = await ReportingService(db).popular_products(limit=limit)
    return [PopularProductResponse(**entry) for entry in ranked]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
):
    product = await CatalogService(db).get_product(product_id)
    return ProductResponse.from_product(product)


# ---------------------------------------------------------------------------
# Admin catalog maintenance (mounted under /api/admin/products)
# ---------------------------------------------------------------------------

@admin_router.get("/stats")
async def product_stats(
    admin: AdminUser = Depends(require_permission("products.view")),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    return await CatalogService(db).get_stats()


@admin_router.post("", response_model=ProductBatchResponse)
async def save_products(
    request: ProductBatchRequest,
    admin: AdminUser = Depends(require_permission("products.edit")),
    db: AsyncSession = Depends(get_db),
):
    """Upsert a scraped batch; products are keyed by their source URL."""
    result = await CatalogService(db).upsert_products(
        [p.model_dump(exclude_none=True) for p in request.products],
        job_id=request.job_id,
    )
    return ProductBatchResponse(**result)


@admin_router.delete("/{product_id}")
async def deactivate_product(
    product_id: str,
    admin: AdminUser = Depends(require_permission("products.delete")),
    db: AsyncSession = Depends(get_db),
):
    service = CatalogService(db)
    await service.get_product(product_id)
    await service.mark_inactive([product_id])
    return {"success": True, "productId": product_id}
