# services/api/lens_api/routes_images.py

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response

from .catalog import ImageCatalog
from .errors import NotFound
from .gateway import ImageAccessGateway
from .image_pipeline import RenderOptions
from .origin import pick_origin_header
from .rate_limit import enforce_rate_limit
from . import schemas

router = APIRouter(prefix="/api/images", tags=["images"])

def get_gateway(request: Request) -> ImageAccessGateway:
    return request.app.state.gateway

def get_catalog(request: Request) -> ImageCatalog:
    return request.app.state.catalog

def _flag(value: Optional[str]) -> bool:
    return value == "true"

def _meta(rows) -> list[schemas.ImageMeta]:
    return [schemas.ImageMeta.model_validate(r) for r in rows]

# --------------------------
# Protected delivery
# --------------------------

@router.get(
    "/token/{image_id}",
    response_model=schemas.TokenResponse,
    responses={404: {"model": schemas.ErrorResponse}},
)
async def image_token(image_id: str, gateway: ImageAccessGateway = Depends(get_gateway)):
    grant = await gateway.request_token(image_id)
    return schemas.TokenResponse(token=grant.token, expires_in=grant.expires_in)

@router.get(
    "/view/{image_id}",
    response_class=Response,
    responses={
        200: {"content": {"image/jpeg": {}}},
        403: {"model": schemas.ErrorResponse},
        404: {"model": schemas.ErrorResponse},
        500: {"model": schemas.ErrorResponse},
        503: {"model": schemas.ErrorResponse},
    },
)
async def view_image(
    image_id: str,
    token: Optional[str] = None,
    watermark: Optional[str] = None,
    thumbnail: Optional[str] = None,
    referer: Optional[str] = Header(default=None),
    origin: Optional[str] = Header(default=None),
    gateway: ImageAccessGateway = Depends(get_gateway),
):
    served = await gateway.view(
        image_id,
        token,
        pick_origin_header(referer, origin),
        RenderOptions(thumbnail=_flag(thumbnail), watermark=_flag(watermark)),
    )
    return Response(content=served.data, media_type=served.content_type, headers=served.headers)

# --------------------------
# Public metadata (rate limited)
# --------------------------

@router.get("", response_model=list[schemas.ImageMeta], dependencies=[Depends(enforce_rate_limit)])
async def list_images(category: Optional[str] = None, catalog: ImageCatalog = Depends(get_catalog)):
    rows = await asyncio.to_thread(catalog.list_images, category)
    return _meta(rows)

@router.get("/home", response_model=list[schemas.ImageMeta], dependencies=[Depends(enforce_rate_limit)])
async def home_images(catalog: ImageCatalog = Depends(get_catalog)):
    rows = await asyncio.to_thread(catalog.list_images, None, "home")
    return _meta(rows)

@router.get("/gallery", response_model=list[schemas.ImageMeta], dependencies=[Depends(enforce_rate_limit)])
async def gallery_images(category: Optional[str] = None, catalog: ImageCatalog = Depends(get_catalog)):
    rows = await asyncio.to_thread(catalog.list_images, category, "gallery")
    return _meta(rows)

@router.get(
    "/meta/{image_id}",
    response_model=schemas.ImageMeta,
    responses={404: {"model": schemas.ErrorResponse}},
    dependencies=[Depends(enforce_rate_limit)],
)
async def image_meta(image_id: str, catalog: ImageCatalog = Depends(get_catalog)):
    image = await asyncio.to_thread(catalog.get, image_id)
    if image is None:
        raise NotFound("unknown_image")
    return schemas.ImageMeta.model_validate(image)
