# services/api/lens_api/models.py

from sqlalchemy import String, DateTime, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from .db import Base

class Image(Base):
    __tablename__ = "images"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    filename: Mapped[str] = mapped_column(String)
    original_name: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)

    # "street" | "nature"
    category: Mapped[str] = mapped_column(String)
    # "home" | "gallery" | "all"
    display_section: Mapped[str] = mapped_column(String, default="all")

    location: Mapped[str | None] = mapped_column(String, nullable=True)
    year: Mapped[str | None] = mapped_column(String, nullable=True)

    # file://... or s3://bucket/key; never exposed to clients
    storage_uri: Mapped[str] = mapped_column(String)
    content_type: Mapped[str] = mapped_column(String)
    size: Mapped[int] = mapped_column(Integer)

    views: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_images_category_uploaded_at", "category", "uploaded_at"),
        Index("ix_images_display_section_category", "display_section", "category"),
    )
