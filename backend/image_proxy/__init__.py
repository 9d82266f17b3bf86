"""
Image Proxy Module

Server-side fetch of user-supplied image URLs for the board's
"import from URL" flow, hardened against SSRF.

Features:
- Private/reserved address blocking on every hop (DNS fail-closed)
- Manual redirect loop with a hop limit
- Byte ceiling enforced by header check and while streaming
- Single deadline across the whole fetch
"""

from .config import ProxyConfig
from .errors import (
    ImageProxyError,
    InvalidUrl,
    BlockedHost,
    RedirectError,
    TooManyRedirects,
    NotAnImage,
    PayloadTooLarge,
    ProxyTimeout,
    NetworkError,
)
from .host_safety import HostSafetyChecker
from .fetcher import ImageFetchProxy, validate_url
from .reader import ProxiedImage
from .routes_fastapi import router, get_image_proxy, method_not_allowed_handler

__all__ = [
    "router",
    "get_image_proxy",
    "method_not_allowed_handler",
    "ProxyConfig",
    "ImageFetchProxy",
    "HostSafetyChecker",
    "ProxiedImage",
    "validate_url",
    "ImageProxyError",
    "InvalidUrl",
    "BlockedHost",
    "RedirectError",
    "TooManyRedirects",
    "NotAnImage",
    "PayloadTooLarge",
    "ProxyTimeout",
    "NetworkError",
]
