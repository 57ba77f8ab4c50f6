import logging
from typing import Tuple

import httpx
from playwright.async_api import Page, Error as PlaywrightError
from pydantic import ValidationError

from healthcheck.config import Settings
from healthcheck.core.errors import CensusError
from healthcheck.core.fetchers import browser_page
from healthcheck.crawler.census_script import CENSUS_SCRIPT, census_options
from healthcheck.crawler.size_probe import top_images
from healthcheck.models.schema import CensusCounts, SectionsBreakdown

log = logging.getLogger("healthcheck")


async def trigger_lazy_content(page: Page, steps: int, pause_ms: int) -> None:
    """
    Scroll down a viewport at a time so visibility-triggered widgets
    initialise, then go back to the top. Nothing confirms that every widget
    actually finished; a slow one can still be missed.
    """
    for _ in range(steps):
        await page.evaluate("window.scrollBy(0, window.innerHeight)")
        await page.wait_for_timeout(pause_ms)
    await page.evaluate("window.scrollTo(0, 0)")
    await page.wait_for_timeout(pause_ms)


async def attach_top_images(client: httpx.AsyncClient, counts: CensusCounts, settings: Settings) -> None:
    if not isinstance(counts.sections, SectionsBreakdown):
        return
    for section in counts.sections.breakdown:
        if not section.image_urls:
            continue
        section.top_images = await top_images(
            client,
            section.image_urls,
            count=settings.top_images_per_section,
            timeout=settings.probe_timeout_seconds,
            concurrency=settings.probe_concurrency,
            limit=settings.probe_max_candidates,
        )


async def run_dom_census(client: httpx.AsyncClient, url: str, settings: Settings) -> Tuple[str, CensusCounts]:
    """
    Render `url`, wake lazy content, and count what the live DOM holds.
    Returns (final_url, counts). Any browser or navigation failure, or a script
    result that does not fit CensusCounts, raises CensusError; the caller decides whether to fall back to the static census.
    """
    try:
        async with browser_page(settings) as page:
            await page.goto(url, wait_until=settings.navigation_wait_until, timeout=settings.navigation_timeout_ms)
            await trigger_lazy_content(page, settings.scroll_steps, settings.scroll_pause_ms)
            raw = await page.evaluate(CENSUS_SCRIPT, census_options())
            final_url = page.url
        counts = CensusCounts.model_validate(raw)
    except PlaywrightError as e:
        log.warning("Playwright census failed for %s: %s", url, e)
        raise CensusError(f"Rendered census failed: {e}") from e
    except ValidationError as e:
        log.warning("Census script returned unexpected data for %s: %d problem(s)", url, e.error_count())
        raise CensusError("Rendered census returned malformed counts") from e
    log.info("Fetched page with Playwright ✅")

    await attach_top_images(client, counts, settings)
    log.info(
        "Rendered census: %d sections, %d carousels / %d slides",
        counts.section_total, counts.carousels.count, counts.carousels.slides_total,
    )
    return final_url, counts
