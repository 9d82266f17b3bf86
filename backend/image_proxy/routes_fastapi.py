"""
Image Proxy API Routes

Provides endpoints for:
- Proxying external images for the board's "import from URL" flow
- Health / limits reporting
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import ProxyConfig
from .errors import ImageProxyError
from .fetcher import ImageFetchProxy

logger = logging.getLogger(__name__)

# ============================================
# Proxy instance
# ============================================

image_proxy = ImageFetchProxy(ProxyConfig.from_env())


def get_image_proxy() -> ImageFetchProxy:
    """FastAPI dependency returning the process-wide proxy."""
    return image_proxy


# ============================================
# Router
# ============================================

PROXY_PATH = "/api/image-proxy"

router = APIRouter(prefix=PROXY_PATH, tags=["Image Proxy"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ============================================
# Endpoints
# ============================================

@router.api_route("", methods=ALL_METHODS)
@router.api_route("/", methods=ALL_METHODS, include_in_schema=False)
async def proxy_image(
    request: Request,
    url: Optional[str] = Query(None, description="URL of the image to proxy"),
    proxy: ImageFetchProxy = Depends(get_image_proxy),
):
    """
    Fetch an external image on behalf of the browser.

    The target and every redirect hop are vetted against private and
    reserved networks before any connection is made. Failures map to
    fixed plain-text responses; no upstream or DNS detail is returned.

    Example:
        GET /api/image-proxy?url=https://example.com/image.jpg
    """
    if request.method != "GET":
        return PlainTextResponse("Method not allowed", status_code=405)

    if not url:
        return PlainTextResponse("Missing url", status_code=400)

    try:
        image = await proxy.fetch(url)
    except ImageProxyError as e:
        logger.warning(f"[ImageProxy] {e.kind} ({e}): {url[:80]}")
        return PlainTextResponse(e.public_message, status_code=e.status_code)
    except Exception:
        logger.exception(f"[ImageProxy] Unexpected failure: {url[:80]}")
        return PlainTextResponse("Unable to fetch image", status_code=400)

    logger.info(f"[ImageProxy] Proxied: {url[:80]} ({image.size} bytes, {image.content_type})")

    return Response(
        content=image.data,
        status_code=200,
        headers={
            "Content-Type": image.content_type,
            "Content-Length": str(image.size),
            "Cache-Control": proxy.config.cache_control,
        },
    )


@router.get("/health")
async def health_check(proxy: ImageFetchProxy = Depends(get_image_proxy)):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-proxy",
        "limits": proxy.config.limits(),
    })


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """
    App-level HTTPException handler.

    Methods outside ALL_METHODS (TRACE, CONNECT, WebDAV verbs, ...) are
    rejected by the router before ``proxy_image`` runs; give them the same
    plain-text 405 as the endpoint. Everything else gets FastAPI's default.
    """
    if exc.status_code == 405 and request.url.path.rstrip("/") == PROXY_PATH:
        return PlainTextResponse("Method not allowed", status_code=405)
    return await http_exception_handler(request, exc)
