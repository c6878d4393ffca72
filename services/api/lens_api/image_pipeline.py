# services/api/lens_api/image_pipeline.py

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterator, Tuple

from PIL import Image, ImageDraw, ImageFont, ImageOps

from .config import Settings
from .errors import CompositeError, DecodeError, EncodeError

LOG = logging.getLogger("lens.render")

DELIVERY_CONTENT_TYPE = "image/jpeg"

# Label fill and outline, RGBA
WATERMARK_FILL = (255, 255, 255, 128)
WATERMARK_STROKE = (0, 0, 0, 77)
WATERMARK_STROKE_WIDTH = 2
WATERMARK_ANGLE_DEG = 30  # counter-clockwise on screen, i.e. rotate(-30) in SVG terms

@dataclass(frozen=True)
class RenderOptions:
    thumbnail: bool = False
    watermark: bool = False

@dataclass(frozen=True)
class RenderRequest:
    source: bytes
    content_type: str = DELIVERY_CONTENT_TYPE
    options: RenderOptions = field(default_factory=RenderOptions)

@dataclass
class RenderedImage:
    data: bytes
    width: int
    height: int
    content_type: str = DELIVERY_CONTENT_TYPE


def watermark_font_size(width: int) -> int:
    return int(max(width / 15, 40))

def thumbnail_size(w: int, h: int, max_dim: int) -> Tuple[int, int]:
    if max(w, h) <= max_dim:
        return w, h
    if w >= h:
        return max_dim, max(1, int(round(h * (max_dim / w))))
    return max(1, int(round(w * (max_dim / h)))), max_dim


class ImageTransformPipeline:
    """
    decode -> [thumbnail] -> [watermark] -> JPEG

    Output is always a progressive JPEG whatever the source format, which also
    drops EXIF/ICC and other container metadata. Nothing is cached: the
    watermark depends on the rendered dimensions and is rebuilt every call.
    """

    def __init__(self, settings: Settings):
        self.watermark_text = settings.WATERMARK_TEXT
        self.font_path = settings.WATERMARK_FONT_PATH
        self.thumbnail_max_dim = int(settings.THUMBNAIL_MAX_DIM)
        self.quality = int(settings.JPEG_QUALITY)
        self.max_pixels = int(settings.MAX_IMAGE_PIXELS)

    def render(self, req: RenderRequest) -> RenderedImage:
        im = self.decode(req.source)

        if req.options.thumbnail:
            new_size = thumbnail_size(im.width, im.height, self.thumbnail_max_dim)
            if new_size != im.size:
                im = im.resize(new_size, resample=Image.Resampling.LANCZOS)

        if req.options.watermark:
            try:
                im = self.apply_watermark(im)
            except Exception as e:
                raise CompositeError(f"composite_failed: {e}") from e

        return self.encode(im)

    # -------------------------
    # Steps
    # -------------------------

    def decode(self, data: bytes) -> Image.Image:
        if not data:
            raise DecodeError("empty_source")
        try:
            im = Image.open(BytesIO(data))
            im.verify()
            im = Image.open(BytesIO(data))
            if im.width * im.height > self.max_pixels:
                raise DecodeError("too_many_pixels")
            im = ImageOps.exif_transpose(im)
            im.load()
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"decode_failed: {e}") from e
        return im

    def apply_watermark(self, im: Image.Image) -> Image.Image:
        base = im.convert("RGBA")
        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))

        font_size = watermark_font_size(base.width)
        stamp = self._label_stamp(font_size)
        sw, sh = stamp.size

        for cx, cy in tile_centers(base.width, base.height, font_size):
            _composite_clipped(overlay, stamp, int(round(cx - sw / 2)), int(round(cy - sh / 2)))

        return Image.alpha_composite(base, overlay)

    def encode(self, im: Image.Image) -> RenderedImage:
        try:
            # JPEG has no alpha: flatten onto white so transparent areas stay light
            if im.mode in ("RGBA", "LA", "PA") or (im.mode == "P" and "transparency" in im.info):
                im = im.convert("RGBA")
                bg = Image.new("RGB", im.size, (255, 255, 255))
                bg.paste(im, mask=im.split()[-1])
                im = bg
            elif im.mode != "RGB":
                im = im.convert("RGB")

            out = BytesIO()
            im.save(out, format="JPEG", quality=self.quality, optimize=True, progressive=True)
        except Exception as e:
            raise EncodeError(f"encode_failed: {e}") from e
        return RenderedImage(data=out.getvalue(), width=im.width, height=im.height)

    # -------------------------
    # Watermark helpers
    # -------------------------

    def _load_font(self, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        try:
            return ImageFont.truetype(self.font_path, size)
        except OSError:
            LOG.warning("watermark font not found at %s, using Pillow default", self.font_path)
            return ImageFont.load_default(size=size)

    def _label_stamp(self, font_size: int) -> Image.Image:
        font = self._load_font(font_size)
        pad = WATERMARK_STROKE_WIDTH + 2
        probe = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
        left, top, right, bottom = probe.textbbox(
            (0, 0), self.watermark_text, font=font, stroke_width=WATERMARK_STROKE_WIDTH
        )

        txt = Image.new("RGBA", (right - left + 2 * pad, bottom - top + 2 * pad), (0, 0, 0, 0))
        d = ImageDraw.Draw(txt)
        d.text(
            (pad - left, pad - top),
            self.watermark_text,
            font=font,
            fill=WATERMARK_FILL,
            stroke_width=WATERMARK_STROKE_WIDTH,
            stroke_fill=WATERMARK_STROKE,
        )
        return txt.rotate(WATERMARK_ANGLE_DEG, expand=True, resample=Image.Resampling.BICUBIC)


def _composite_clipped(layer: Image.Image, stamp: Image.Image, x: int, y: int) -> None:
    # Image.alpha_composite rejects negative destinations; shift the source window instead
    sx, sy = max(0, -x), max(0, -y)
    if sx >= stamp.width or sy >= stamp.height or x >= layer.width or y >= layer.height:
        return
    layer.alpha_composite(stamp, dest=(max(0, x), max(0, y)), source=(sx, sy))


def tile_centers(width: int, height: int, font_size: int) -> Iterator[Tuple[float, float]]:
    """
    Label centres for the diagonal tiling, in image coordinates.

    The grid lives in a frame rotated by WATERMARK_ANGLE_DEG: cells are
    10*font_size along the text baseline and 5*font_size across it. Cell
    (0, 0) sits on the image centre and the grid reaches half the frame
    diagonal in every direction, so any aspect ratio is covered edge to edge.
    """
    cell_w = font_size * 10
    cell_h = font_size * 5
    theta = math.radians(WATERMARK_ANGLE_DEG)
    cos_t, sin_t = math.cos(theta), math.sin(theta)

    half_diag = math.hypot(width, height) / 2
    ni = int(math.ceil(half_diag / cell_w)) + 1
    nj = int(math.ceil(half_diag / cell_h)) + 1
    cx, cy = width / 2, height / 2

    for j in range(-nj, nj + 1):
        for i in range(-ni, ni + 1):
            u = i * cell_w
            v = j * cell_h
            # baseline direction (cos, -sin), perpendicular (sin, cos); y grows downwards
            yield cx + u * cos_t + v * sin_t, cy - u * sin_t + v * cos_t
