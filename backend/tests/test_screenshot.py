import asyncio

import pytest

from restyler.errors import UnsafeURLError
from restyler.services import screenshot


@pytest.fixture
def no_dns(monkeypatch):
    calls = []

    async def _resolve(host):
        calls.append(host)
        return {"public.test": ["93.184.216.34"], "intranet.test": ["10.1.2.3"], "v6.test": ["fd12:3456::1"]}[host]

    monkeypatch.setattr(screenshot, "resolve_host", _resolve)
    return calls


@pytest.mark.parametrize(
    "url",
    [
        "http://127.0.0.1/admin",
        "http://169.254.169.254/",
        "http://10.0.0.5/",
        "http://172.20.1.1/",
        "http://192.168.1.1/router",
        "http://[::1]/",
        "http://[fe80::1]/",
        "http://[::ffff:127.0.0.1]/",
        "http://localhost:3000/",
        "file:///etc/passwd",
        "ftp://example.com/",
        "not a url",
    ],
)
def test_unsafe_urls_rejected(url, no_dns):
    with pytest.raises(UnsafeURLError):
        asyncio.run(screenshot.validate_public_url(url))
    assert no_dns == []


def test_hostname_resolving_to_private_address(no_dns):
    with pytest.raises(UnsafeURLError):
        asyncio.run(screenshot.validate_public_url("https://intranet.test/"))
    with pytest.raises(UnsafeURLError):
        asyncio.run(screenshot.validate_public_url("https://v6.test/"))


def test_public_url_allowed(no_dns):
    assert asyncio.run(screenshot.validate_public_url("https://public.test/page?q=1")) == "https://public.test/page?q=1"


def test_capture_rejects_before_launching_browser(monkeypatch):
    import sys

    monkeypatch.setitem(sys.modules, "playwright.async_api", None)
    with pytest.raises(UnsafeURLError):
        asyncio.run(screenshot.capture_screenshot("http://127.0.0.1/admin"))


@pytest.mark.parametrize("address, blocked", [("8.8.8.8", False), ("100.64.0.1", True), ("2606:4700::1111", False), ("fc00::1", True)])
def test_blocklist(address, blocked):
    assert screenshot.is_blocked_address(address) is blocked
