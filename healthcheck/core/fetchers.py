import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Tuple

import httpx
from playwright.async_api import async_playwright, Page

from healthcheck.config import Settings
from healthcheck.core.errors import UpstreamError
from healthcheck.core.utils import default_headers

log = logging.getLogger("healthcheck")

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]

VIEWPORT = {"width": 1366, "height": 900}


async def fetch_html(client: httpx.AsyncClient, url: str, timeout: float) -> Tuple[str, str]:
    """GET a page without rendering it. Returns (final_url, html)."""
    try:
        r = await client.get(url, headers=default_headers(), timeout=timeout, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.error("httpx fetch failed for %s: %s", url, e)
        raise UpstreamError(f"Fetch failed: {e}") from e
    if r.status_code >= 400:
        log.warning("httpx returned %s for %s", r.status_code, url)
        raise UpstreamError(f"Fetch failed: {r.status_code}", r.status_code)
    log.info("Fetched page via httpx (%s bytes)", len(r.content))
    return str(r.url), r.text


@asynccontextmanager
async def browser_page(settings: Settings) -> AsyncIterator[Page]:
    """
    One browser session per audit. Launches chromium locally, or attaches to
    BROWSER_WS_ENDPOINT over CDP; either way the browser is closed (or
    disconnected) when the block exits, whatever the exit path.
    """
    async with async_playwright() as p:
        if settings.browser_ws_endpoint:
            browser = await p.chromium.connect_over_cdp(
                settings.browser_ws_endpoint, timeout=settings.navigation_timeout_ms
            )
            log.info("Playwright: attached to remote browser")
        else:
            browser = await p.chromium.launch(headless=True, args=BROWSER_ARGS)
        try:
            context = await browser.new_context(
                user_agent=default_headers()["User-Agent"],
                viewport=VIEWPORT,
                java_script_enabled=True,
                locale="en-GB",
            )
            # make bot detection harder
            await context.add_init_script(
                """Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"""
            )
            page = await context.new_page()
            page.set_default_timeout(settings.navigation_timeout_ms)
            yield page
        finally:
            await browser.close()
