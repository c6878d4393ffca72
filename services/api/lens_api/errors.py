# services/api/lens_api/errors.py

from fastapi import Request
from fastapi.responses import JSONResponse

class ImageAccessError(Exception):
    """
    Base for every failure the image access core reports to a client.
      - status_code: HTTP status surfaced to the client
      - public_message: generic body text (never carries token/signature detail)
      - reason: internal tag for logs
    """
    status_code = 500
    public_message = "Error serving image"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.__class__.__name__
        super().__init__(self.reason)


class Forbidden(ImageAccessError):
    status_code = 403
    public_message = "Access denied"


class NotFound(ImageAccessError):
    status_code = 404
    public_message = "Image not found"


class StorageUnavailable(ImageAccessError):
    status_code = 503
    public_message = "Image storage temporarily unavailable"


class RateLimited(ImageAccessError):
    status_code = 429
    public_message = "Too many requests from this IP, please try again later."


class RenderError(ImageAccessError):
    status_code = 500
    public_message = "Error processing image"


class DecodeError(RenderError):
    pass


class CompositeError(RenderError):
    pass


class EncodeError(RenderError):
    pass


async def image_access_error_handler(request: Request, exc: ImageAccessError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})
