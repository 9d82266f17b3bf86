"""
Redirect-Following Image Fetcher

Fetches a client-supplied image URL without trusting the HTTP client's
built-in redirect handling:
1. Validate the URL (absolute, http/https only)
2. Vet the host (private/reserved addresses blocked, DNS fail-closed)
3. Send the request with redirects disabled, connecting to the vetted
   address (Host header and TLS SNI keep the original name)
4. On 3xx, resolve Location against the current URL and repeat from 1
5. Hand the terminal response to the bounded reader

One deadline covers every hop, DNS lookup and body read.
"""

import asyncio
import logging
from typing import Optional

import httpx

from .config import ProxyConfig, REDIRECT_STATUSES
from .errors import (
    ImageProxyError,
    InvalidUrl,
    NetworkError,
    ProxyTimeout,
    RedirectError,
    TooManyRedirects,
)
from .host_safety import HostSafetyChecker, Resolver
from .reader import ProxiedImage, read_image

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def validate_url(value: str) -> httpx.URL:
    """
    Parse an absolute http(s) URL. No network access.

    The same parser is used for validation and for the outbound request,
    so the host that gets vetted is the host that gets contacted.

    Raises:
        InvalidUrl: If the value doesn't parse or uses another scheme.
    """
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidUrl(str(e)) from e

    if url.scheme not in ALLOWED_SCHEMES:
        raise InvalidUrl(f"scheme {url.scheme!r} not allowed")
    if not url.host:
        raise InvalidUrl("missing host")

    return url.copy_with(fragment=None)


def outbound_host(url: httpx.URL) -> str:
    """ASCII host httpx will connect to (IDNA-encoded, no brackets)."""
    return url.raw_host.decode("ascii")


def pinned_request(client: httpx.AsyncClient, url: httpx.URL, address: str) -> httpx.Request:
    """
    Build a GET for ``url`` that connects to ``address``.

    The resolver is not consulted again at connect time, so the address
    that was vetted is the address that is contacted. The Host header and
    TLS SNI (and so certificate verification) still use the original name.
    """
    extensions = {}
    if url.scheme == "https":
        extensions["sni_hostname"] = outbound_host(url)

    return client.build_request(
        "GET",
        url.copy_with(host=address),
        headers={"Host": url.netloc.decode("ascii")},
        extensions=extensions,
    )


class ImageFetchProxy:
    """
    SSRF-safe image fetcher.

    Usage:
        proxy = ImageFetchProxy(ProxyConfig.from_env())
        image = await proxy.fetch("https://example.com/cat.jpg")

    ``resolver`` and ``transport`` are injection points for DNS and
    HTTP; both default to the real network.
    """

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        resolver: Optional[Resolver] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ProxyConfig()
        self.host_checker = HostSafetyChecker(self.config, resolver)
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        # A fresh client per request: no shared pool or cookie jar between callers
        return httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=False,
            trust_env=False,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            headers={
                "User-Agent": self.config.user_agent,
                "Accept": "image/*,*/*;q=0.8",
                # Compressed bodies would be inflated before the byte ceiling sees them
                "Accept-Encoding": "identity",
            },
        )

    async def fetch(self, url: str) -> ProxiedImage:
        """
        Fetch an image under the configured deadline.

        Raises:
            ImageProxyError: One of the typed failures in ``errors``.
        """
        try:
            return await asyncio.wait_for(
                self._fetch(url),
                timeout=self.config.timeout_seconds,
            )
        except ImageProxyError:
            raise
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ProxyTimeout(url) from e
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            raise NetworkError(type(e).__name__) from e

    async def _fetch(self, url: str) -> ProxiedImage:
        current = validate_url(url)
        redirects = 0

        async with self._client() as client:
            while True:
                address = await self.host_checker.ensure_allowed(outbound_host(current))

                logger.debug(f"[ImageProxy] GET {str(current)[:80]} via {address} (hop {redirects})")
                request = pinned_request(client, current, address)
                response = await client.send(request, stream=True)

                try:
                    if response.status_code not in REDIRECT_STATUSES:
                        return await read_image(
                            response,
                            max_bytes=self.config.max_bytes,
                            chunk_size=self.config.chunk_size,
                        )

                    location = response.headers.get("location")
                    if not location:
                        raise RedirectError(f"{response.status_code} without Location")

                    redirects += 1
                    if redirects > self.config.max_redirects:
                        raise TooManyRedirects(f"more than {self.config.max_redirects} hops")

                    try:
                        target = current.join(location)
                    except (httpx.InvalidURL, ValueError) as e:
                        raise RedirectError(f"unusable Location: {location[:80]}") from e

                    current = validate_url(str(target))
                finally:
                    await response.aclose()
