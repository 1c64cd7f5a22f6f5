"""
Product models - scraped catalog entries shown on the storefront.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, Boolean, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base


class ScrapedProduct(Base):
    """
    A product scraped from a Japanese source site.

    ``id`` is derived from the normalized source URL (see
    ``services.catalog.product_id_for``) so re-scrapes update in place.
    ``price`` is the scraped yen amount; the storefront price is computed
    with the markup on read.
    """
    __tablename__ = "scraped_products"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    brand: Mapped[str] = mapped_column(String(255), default="")
    category: Mapped[str] = mapped_column(String(255), default="")
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    source_site: Mapped[str] = mapped_column(String(100), nullable=False)

    availability: Mapped[str] = mapped_column(String(20), default="in")  # in, out, preorder
    is_sold_out: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)  # False once gone from the source site

    scraped_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    scraping_job_id: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        Index("idx_product_source_site", "source_site"),
        Index("idx_product_active", "is_active"),
    )
