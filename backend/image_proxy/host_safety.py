"""
Host Safety Checker

Decides whether a hostname may be contacted by the proxy:
- Literal IPs are classified directly (no DNS)
- Local names (localhost, *.localhost, *.local) are blocked without DNS
- Other names are resolved; the host is blocked if ANY address is private
- Resolution failures are blocked (fail closed)
"""

import asyncio
import ipaddress
import logging
import socket
from typing import Awaitable, Callable, List, Optional, Union

from .config import ProxyConfig
from .errors import BlockedHost

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[List[str]]]


async def resolve_host(hostname: str) -> List[str]:
    """Resolve a hostname to every A/AAAA address the system resolver returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def parse_ip(value: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """Parse a literal IPv4/IPv6 address, or return None if it isn't one."""
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


class HostSafetyChecker:
    """
    SSRF guard for outbound destinations.

    Usage:
        checker = HostSafetyChecker(config)
        address = await checker.ensure_allowed("images.example.com")
    """

    def __init__(self, config: ProxyConfig, resolver: Optional[Resolver] = None):
        self.config = config
        self.resolver = resolver or resolve_host

    def is_private_address(self, address: str) -> bool:
        """
        Classify one address. Anything that isn't a well-formed
        public IPv4/IPv6 literal counts as private.
        """
        ip = parse_ip(address)
        if ip is None:
            return True

        if isinstance(ip, ipaddress.IPv4Address):
            return any(ip in net for net in self.config.blocked_ipv4)

        mapped = ip.ipv4_mapped
        if mapped is not None:
            return any(mapped in net for net in self.config.blocked_ipv4)

        return any(ip in net for net in self.config.blocked_ipv6)

    def is_local_name(self, hostname: str) -> bool:
        lower = hostname.lower().rstrip(".")
        if lower in self.config.blocked_hostnames:
            return True
        return lower.endswith(self.config.blocked_hostname_suffixes)

    async def allowed_addresses(self, hostname: Optional[str]) -> List[str]:
        """
        Vet a host and return the addresses it may be contacted at.

        Raises:
            BlockedHost: If the host is blocked for any reason.
        """
        if not hostname:
            raise BlockedHost("")

        if self.is_local_name(hostname):
            logger.debug(f"[HostSafety] Local hostname blocked: {hostname}")
            raise BlockedHost(hostname)

        if parse_ip(hostname) is not None:
            if self.is_private_address(hostname):
                raise BlockedHost(hostname)
            return [hostname]

        try:
            addresses = await self.resolver(hostname)
        except Exception as e:
            logger.debug(f"[HostSafety] DNS failure for {hostname}: {type(e).__name__}")
            raise BlockedHost(hostname) from e

        if not addresses:
            raise BlockedHost(hostname)

        for address in addresses:
            if self.is_private_address(address):
                logger.debug(f"[HostSafety] {hostname} resolved to blocked address {address}")
                raise BlockedHost(hostname)

        return list(addresses)

    async def is_blocked(self, hostname: Optional[str]) -> bool:
        """Return True if the host must not be contacted."""
        try:
            await self.allowed_addresses(hostname)
        except BlockedHost:
            return True
        return False

    async def ensure_allowed(self, hostname: Optional[str]) -> str:
        """
        Vet a host and pick the address to connect to.

        Raises:
            BlockedHost: If the host is blocked for any reason.
        """
        addresses = await self.allowed_addresses(hostname)
        return addresses[0]
