# services/api/lens_api/catalog.py

from typing import Optional

from sqlalchemy import asc, desc, select, update
from sqlalchemy.orm import sessionmaker

from . import models

class ImageCatalog:
    """Read access to image metadata plus the one write the core owns: the view counter."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, image_id: str) -> Optional[models.Image]:
        with self._session_factory() as db:
            return db.get(models.Image, image_id)

    def increment_views(self, image_id: str) -> bool:
        # single UPDATE so concurrent views rely on the database's atomic increment
        with self._session_factory() as db:
            res = db.execute(
                update(models.Image)
                .where(models.Image.id == image_id)
                .values(views=models.Image.views + 1)
            )
            db.commit()
            return bool(res.rowcount)

    def list_images(self, category: str | None = None, section: str | None = None) -> list[models.Image]:
        q = select(models.Image)
        if category and category.lower() != "all":
            q = q.where(models.Image.category == category.lower())
        if section:
            q = q.where(models.Image.display_section == section)
            q = q.order_by(asc(models.Image.category), asc(models.Image.original_name))
        else:
            q = q.order_by(desc(models.Image.uploaded_at))

        with self._session_factory() as db:
            return list(db.scalars(q).all())
