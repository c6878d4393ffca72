"""
Shared fixtures for the image access API tests.
"""

from datetime import datetime, timedelta
from io import BytesIO

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image as PILImage

from lens_api.catalog import ImageCatalog
from lens_api.config import Settings
from lens_api.db import Base, make_engine, make_session_factory
from lens_api.main import create_app
from lens_api.storage import LocalStorage
from lens_api.tokens import TokenService
from lens_api import models

ALLOWED_ORIGIN = "http://localhost:5173"
T0_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start: int = T0_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_image_bytes(size=(640, 480), color=(128, 128, 128), fmt="JPEG", mode="RGB") -> bytes:
    im = PILImage.new(mode, size, color)
    out = BytesIO()
    im.save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite:///{tmp_path / 'lens.db'}",
        IMAGE_SECRET_KEY="test-secret",
        IMAGE_STORE_DIR=str(tmp_path / "store"),
        CLIENT_URL=None,
        ALLOWED_ORIGINS=[ALLOWED_ORIGIN, "http://localhost:5174"],
        REDIS_URL=None,
    )


@pytest.fixture
def token_service(settings, clock) -> TokenService:
    return TokenService(settings, clock=clock)


@pytest.fixture
def session_factory(settings):
    engine = make_engine(settings)
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def catalog(session_factory) -> ImageCatalog:
    return ImageCatalog(session_factory)


@pytest.fixture
def storage(settings) -> LocalStorage:
    return LocalStorage(base_dir=settings.IMAGE_STORE_DIR)


@pytest.fixture
def seed_image(session_factory, storage):
    """Store bytes and insert a metadata row; returns the image id."""

    counter = {"n": 0}

    def _seed(
        image_id: str = "abc123",
        data: bytes | None = None,
        category: str = "nature",
        display_section: str = "all",
        original_name: str | None = None,
        views: int = 0,
        storage_uri: str | None = None,
    ) -> str:
        counter["n"] += 1
        data = data if data is not None else make_image_bytes()
        if storage_uri is None:
            storage_uri = storage.put_bytes(data=data, key=f"{image_id}.jpg", content_type="image/jpeg").uri
        with session_factory() as db:
            db.add(
                models.Image(
                    id=image_id,
                    filename=f"{image_id}.jpg",
                    original_name=original_name or f"{image_id}.jpg",
                    title=f"Title {image_id}",
                    category=category,
                    display_section=display_section,
                    storage_uri=storage_uri,
                    content_type="image/jpeg",
                    size=len(data),
                    views=views,
                    uploaded_at=datetime(2024, 1, 1) + timedelta(minutes=counter["n"]),
                )
            )
            db.commit()
        return image_id

    return _seed


@pytest.fixture
def app(settings, storage, token_service, session_factory):
    return create_app(settings, storage=storage, token_service=token_service)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
