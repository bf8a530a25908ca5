import asyncio
import base64
import ipaddress
import logging
import socket
from typing import List
from urllib.parse import urlsplit

from ..errors import ScreenshotTimeout, UnsafeURLError


logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 800}
NAVIGATION_TIMEOUT_MS = 15000

BLOCKED_NETWORKS = [
    ipaddress.ip_network(n)
    for n in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "100.64.0.0/10",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
]


def is_blocked_address(address: str) -> bool:
    ip = ipaddress.ip_address(address.split("%", 1)[0])
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip in network for network in BLOCKED_NETWORKS if network.version == ip.version)


async def resolve_host(host: str) -> List[str]:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise UnsafeURLError(f"DNS lookup failed for {host}") from exc
    return sorted({info[4][0] for info in infos})


async def validate_public_url(url: str) -> str:
    """Reject anything but http(s) URLs that resolve to public addresses."""
    try:
        parts = urlsplit(url or "")
    except ValueError as exc:
        raise UnsafeURLError("Invalid URL") from exc
    if parts.scheme not in {"http", "https"}:
        raise UnsafeURLError("Only http and https URLs are allowed")
    host = parts.hostname
    if not host:
        raise UnsafeURLError("Invalid URL")
    if host == "localhost" or host.endswith(".localhost"):
        raise UnsafeURLError("Private URLs are not allowed")

    try:
        addresses = [str(ipaddress.ip_address(host))]
    except ValueError:
        addresses = await resolve_host(host)
    if not addresses or any(is_blocked_address(a) for a in addresses):
        raise UnsafeURLError("Private URLs are not allowed")
    return parts.geturl()


async def capture_screenshot(url: str) -> str:
    safe_url = await validate_public_url(url)

    # Imported lazily so the browser stack only loads when a capture is requested.
    from playwright.async_api import TimeoutError as PlaywrightTimeout, async_playwright

    logger.info("capturing screenshot of %s", safe_url)
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True, args=["--no-sandbox", "--disable-setuid-sandbox"])
        try:
            page = await browser.new_page(viewport=VIEWPORT)
            try:
                await page.goto(safe_url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
            except PlaywrightTimeout as exc:
                raise ScreenshotTimeout(f"timeout loading {safe_url}") from exc
            png = await page.screenshot(type="png", clip={"x": 0, "y": 0, **VIEWPORT})
        finally:
            await browser.close()
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
