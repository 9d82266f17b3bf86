"""
Image Proxy Errors

Every failure the proxy can produce. Each kind keeps its own class so
logs can tell them apart, while the client only ever sees the coarse
``public_message`` paired with ``status_code``.
"""


class ImageProxyError(Exception):
    """Base class for all proxy failures."""
    kind = "ImageProxyError"
    status_code = 400
    public_message = "Unable to fetch image"


class InvalidUrl(ImageProxyError):
    """Input is not an absolute http/https URL."""
    kind = "InvalidUrl"


class BlockedHost(ImageProxyError):
    """Destination is private/reserved, a local name, or failed to resolve."""
    kind = "BlockedHost"


class RedirectError(ImageProxyError):
    """Redirect status without a usable Location header."""
    kind = "RedirectError"


class TooManyRedirects(ImageProxyError):
    kind = "TooManyRedirects"


class NotAnImage(ImageProxyError):
    kind = "NotAnImage"
    public_message = "Not an image"


class PayloadTooLarge(ImageProxyError):
    """Declared or streamed size exceeds the byte ceiling."""
    kind = "PayloadTooLarge"
    status_code = 413
    public_message = "Image too large"


class ProxyTimeout(ImageProxyError):
    """The overall deadline elapsed."""
    kind = "Timeout"
    status_code = 504
    public_message = "Timeout"


class NetworkError(ImageProxyError):
    """Any other transport-level failure."""
    kind = "NetworkError"
