"""
URL validation and page fetching for recipe imports.

Every URL is checked before any network call: only public http(s) targets
are allowed, so a caller cannot point the server at loopback, private,
link-local or cloud-metadata addresses (SSRF). Redirect hops are checked
the same way before they are followed.

Known limitation: the host is resolved once for the check and again by
httpx when it connects. A DNS server that answers differently between the
two lookups (DNS rebinding) can still steer the connection to a private
address. Closing that needs a transport that connects to the checked
address; deployments that care should also block private egress at the
network level.
"""

import asyncio
import ipaddress
import socket
from typing import Optional
from urllib.parse import urlparse

import httpx

from mealplanner.config import get_settings
from mealplanner.errors import FetchError, ValidationError

settings = get_settings()


BLOCKED_HOSTNAMES = {
    "localhost",
    "metadata.google.internal",
    "metadata",
}

BLOCKED_HOST_SUFFIXES = (".localhost", ".local", ".internal")

# Ranges not already covered by ipaddress' is_private/is_loopback/... flags
BLOCKED_NETWORKS = [
    ipaddress.ip_network("100.64.0.0/10"),   # Carrier-grade NAT
    ipaddress.ip_network("198.18.0.0/15"),   # Benchmarking
    ipaddress.ip_network("0.0.0.0/8"),       # Current network
]


def get_domain(url: str) -> str:
    """Extract domain from URL for logging."""
    try:
        parsed = urlparse(url)
        return (parsed.hostname or "unknown").lower().replace("www.", "")
    except ValueError:
        return "unknown"


def is_blocked_address(address: str) -> bool:
    """Check whether an IP address literal points at a non-public network."""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False

    # IPv4-mapped IPv6 (::ffff:127.0.0.1) is judged by its IPv4 address
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        ip = ip.ipv4_mapped

    if (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    ):
        return True
    return any(ip in network for network in BLOCKED_NETWORKS if network.version == ip.version)


def validate_external_url(url: Optional[str]) -> str:
    """
    Validate a URL for safe external fetching without touching the network.

    Returns the normalized URL string or raises ValidationError.
    """
    if not url or not isinstance(url, str) or not url.strip():
        raise ValidationError("URL is required")

    url = url.strip()
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError for malformed ports
    except ValueError:
        raise ValidationError("Invalid URL format")

    if parsed.scheme not in ("http", "https"):
        raise ValidationError("Only HTTP and HTTPS URLs are allowed")

    hostname = (parsed.hostname or "").lower().rstrip(".")
    if not hostname:
        raise ValidationError("Invalid URL format")

    if parsed.username or parsed.password:
        raise ValidationError("URLs with authentication credentials are not allowed")

    if (
        hostname in BLOCKED_HOSTNAMES
        or hostname.endswith(BLOCKED_HOST_SUFFIXES)
        or is_blocked_address(hostname)
    ):
        raise ValidationError("URLs pointing to internal/private addresses are not allowed")

    return url


async def _resolve_addresses(hostname: str, port: int) -> list[str]:
    """Resolve a hostname to the IP addresses it would connect to."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, port, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


async def ensure_public_host(url: str) -> None:
    """
    Check that every address the URL's host resolves to is public.

    Raises ValidationError for private targets and FetchError when the host
    does not resolve at all.
    """
    parsed = urlparse(url)
    hostname = parsed.hostname or ""
    port = parsed.port or (443 if parsed.scheme == "https" else 80)

    try:
        ipaddress.ip_address(hostname)
        return  # literal addresses were already checked by validate_external_url
    except ValueError:
        pass

    try:
        addresses = await _resolve_addresses(hostname, port)
    except (OSError, UnicodeError) as e:
        raise FetchError(f"Could not resolve host {hostname}: {e}")

    if not addresses or any(is_blocked_address(address) for address in addresses):
        raise ValidationError("URLs pointing to internal/private addresses are not allowed")


async def _guard_request(request: httpx.Request) -> None:
    """httpx request hook: re-validate every hop, including redirects."""
    url = str(request.url)
    validate_external_url(url)
    await ensure_public_host(url)


async def fetch_page(url: str, timeout: Optional[float] = None) -> str:
    """
    Fetch a recipe page and return its text.

    The URL must already have passed validate_external_url. Raises FetchError
    on timeouts, network errors and non-2xx responses. There is no retry.
    """
    timeout = timeout if timeout is not None else settings.fetch_timeout_seconds
    headers = {
        "User-Agent": settings.fetch_user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }
    domain = get_domain(url)

    print(f"🌐 Fetching recipe page from {domain}...")
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=settings.fetch_max_redirects,
            timeout=timeout,
            event_hooks={"request": [_guard_request]},
        ) as client:
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            print(f"✅ Fetched {len(response.text)} characters from {domain}")
            return response.text

    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        print(f"❌ Failed to fetch {url}: HTTP {status}")
        raise FetchError(f"Failed to fetch recipe page: {status}", status_code=status)

    except httpx.TimeoutException:
        print(f"❌ Timeout fetching {url}")
        raise FetchError(
            f"Timed out fetching recipe page after {timeout:g}s",
            timed_out=True,
        )

    except httpx.TooManyRedirects:
        print(f"❌ Too many redirects fetching {url}")
        raise FetchError("Failed to fetch recipe page: too many redirects")

    except httpx.HTTPError as e:
        print(f"❌ Failed to fetch {url}: {e}")
        raise FetchError(f"Failed to fetch recipe page: {e}")
