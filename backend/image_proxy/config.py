"""
Image Proxy Configuration

Process-wide limits for the image proxy. Built once at startup
(usually from environment variables) and never mutated afterwards.
"""

import os
import ipaddress
from dataclasses import dataclass
from typing import Tuple

# ============================================
# Defaults
# ============================================

DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MiB
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_TIMEOUT_SECONDS = 8.0
DEFAULT_USER_AGENT = "FieldBoard-ImageProxy"
DEFAULT_CACHE_CONTROL = "public, max-age=86400"  # Browser cache 24h
DEFAULT_CHUNK_SIZE = 64 * 1024

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

BLOCKED_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "100.64.0.0/10",    # Carrier-grade NAT
        "192.0.2.0/24",     # TEST-NET-1
        "198.51.100.0/24",  # TEST-NET-2
        "203.0.113.0/24",   # TEST-NET-3
    )
)

BLOCKED_IPV6_NETWORKS = tuple(
    ipaddress.IPv6Network(cidr)
    for cidr in (
        "::1/128",    # Loopback
        "::/128",     # Unspecified
        "fe80::/10",  # Link-local
        "fc00::/7",   # Unique local (fc00::/8 + fd00::/8)
    )
)

BLOCKED_HOSTNAMES = frozenset({"localhost"})
BLOCKED_HOSTNAME_SUFFIXES = (".localhost", ".local")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = int(raw)
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = float(raw)
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class ProxyConfig:
    """Immutable limits and block tables for the image proxy."""
    max_bytes: int = DEFAULT_MAX_BYTES
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    cache_control: str = DEFAULT_CACHE_CONTROL
    chunk_size: int = DEFAULT_CHUNK_SIZE

    blocked_ipv4: Tuple[ipaddress.IPv4Network, ...] = BLOCKED_IPV4_NETWORKS
    blocked_ipv6: Tuple[ipaddress.IPv6Network, ...] = BLOCKED_IPV6_NETWORKS
    blocked_hostnames: frozenset = BLOCKED_HOSTNAMES
    blocked_hostname_suffixes: Tuple[str, ...] = BLOCKED_HOSTNAME_SUFFIXES

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        """
        Build config from environment variables.

        Environment:
            IMAGE_PROXY_MAX_BYTES: Byte ceiling for a proxied image
            IMAGE_PROXY_MAX_REDIRECTS: Redirect hops followed before giving up
            IMAGE_PROXY_TIMEOUT_SECONDS: Deadline for the whole fetch (all hops)
            IMAGE_PROXY_USER_AGENT: User-Agent sent to upstream servers

        Raises:
            ValueError: If a numeric variable is malformed or not positive.
        """
        return cls(
            max_bytes=_env_int("IMAGE_PROXY_MAX_BYTES", DEFAULT_MAX_BYTES),
            max_redirects=_env_int("IMAGE_PROXY_MAX_REDIRECTS", DEFAULT_MAX_REDIRECTS),
            timeout_seconds=_env_float("IMAGE_PROXY_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            user_agent=os.getenv("IMAGE_PROXY_USER_AGENT") or DEFAULT_USER_AGENT,
        )

    def limits(self) -> dict:
        """Public view of the limits (used by the health endpoint)."""
        return {
            "max_bytes": self.max_bytes,
            "max_size_mb": round(self.max_bytes / (1024 * 1024), 2),
            "max_redirects": self.max_redirects,
            "timeout_seconds": self.timeout_seconds,
        }
