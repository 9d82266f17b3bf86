"""
Image proxy test configuration

Fixtures and helpers shared by the test modules. Nothing here touches
the real network: DNS goes through a stub resolver and HTTP through
httpx.MockTransport.
"""

import sys
from pathlib import Path

import httpx
import pytest

# Add backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_proxy import ImageFetchProxy, ProxyConfig, get_image_proxy


PUBLIC_IP = "93.184.216.34"
PUBLIC_IP_2 = "151.101.1.69"

# 1x1 PNG
TINY_PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


# ============================================
# Helpers
# ============================================

class StubResolver:
    """
    Async resolver backed by a dict.

    Unknown hostnames raise OSError (like NXDOMAIN). Every lookup is
    recorded in ``calls``.
    """

    def __init__(self, mapping=None):
        self.mapping = dict(mapping or {})
        self.calls = []

    async def __call__(self, hostname):
        self.calls.append(hostname)
        if hostname not in self.mapping:
            raise OSError(f"Name or service not known: {hostname}")
        return list(self.mapping[hostname])


class RecordingHandler:
    """
    Wraps a MockTransport handler and records every request it sees.
    """

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    async def __call__(self, request):
        self.requests.append(request)
        result = self.handler(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result

    @property
    def hosts(self):
        return [request_host(r) for r in self.requests]


def request_host(request):
    """Hostname the request was addressed to (the URL carries the pinned IP)."""
    return httpx.URL(f"http://{request.headers['host']}").host


def image_response(body=TINY_PNG, content_type="image/png", status_code=200, headers=None):
    all_headers = {"Content-Type": content_type}
    all_headers.update(headers or {})
    return httpx.Response(status_code, headers=all_headers, content=body)


def redirect_response(location, status_code=302):
    headers = {"Location": location} if location is not None else {}
    return httpx.Response(status_code, headers=headers)


def build_proxy(handler, resolver=None, config=None):
    """ImageFetchProxy wired to a mock transport and stub resolver."""
    return ImageFetchProxy(
        config=config or ProxyConfig(),
        resolver=resolver or StubResolver(default_dns()),
        transport=httpx.MockTransport(handler),
    )


def default_dns():
    return {
        "images.example.com": [PUBLIC_IP],
        "cdn.example.net": [PUBLIC_IP_2],
        "hop1.example.com": [PUBLIC_IP],
        "hop2.example.com": [PUBLIC_IP],
        "hop3.example.com": [PUBLIC_IP],
        "internal.example.com": ["10.0.0.5"],
        "mixed.example.com": [PUBLIC_IP, "192.168.1.10"],
    }


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def resolver():
    return StubResolver(default_dns())


@pytest.fixture
def app():
    from main import create_app

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client_for(app):
    """
    Factory returning a TestClient whose proxy uses the given handler.

    Usage:
        client = client_for(lambda request: image_response())
        response = client.get("/api/image-proxy", params={"url": "..."})
    """
    from fastapi.testclient import TestClient

    def factory(handler, resolver=None, config=None):
        proxy = build_proxy(handler, resolver=resolver, config=config)
        app.dependency_overrides[get_image_proxy] = lambda: proxy
        return TestClient(app)

    return factory
