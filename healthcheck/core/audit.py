import asyncio
import logging
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ValidationError

from healthcheck.audit.rules import DEFAULT_RULES, apply_overrides, score_counts
from healthcheck.config import Settings
from healthcheck.core.errors import HealthcheckError, CensusError, RequestDataError
from healthcheck.core.fetchers import fetch_html
from healthcheck.core.llm import summarise_audit
from healthcheck.core.pagespeed import run_pagespeed
from healthcheck.crawler.dom_census import run_dom_census
from healthcheck.extractor.metadata import extract_page_metadata
from healthcheck.extractor.static_census import build_static_counts
from healthcheck.models.schema import (
    AuditTarget,
    AspResponse,
    AuditSummaryInput,
    CensusCounts,
    FullAuditResponse,
    PageMetadata,
    PartResult,
    RecommendationsRequest,
    RecommendationsResponse,
)

log = logging.getLogger("healthcheck")

CENSUS_MODES = ("auto", "rendered", "static")


def _asp_response(target_url: str, final_url: str, counts: CensusCounts, mode: str, settings: Settings) -> AspResponse:
    rules = apply_overrides(DEFAULT_RULES, settings.scoring_overrides)
    return AspResponse(
        target_url=target_url,
        final_url=final_url,
        counts=counts,
        asp=score_counts(counts, rules),
        mode=mode,
    )


async def run_census(
    client: httpx.AsyncClient, url: str, settings: Settings, mode: Optional[str] = None
) -> AspResponse:
    """
    Structural census + score.

    mode "rendered" needs the browser and fails with it; "static" only
    fetches markup; "auto" tries the browser (when enabled) and falls back
    to static if rendering fails.
    """
    mode = (mode or settings.census_mode or "auto").strip().lower()
    if mode not in CENSUS_MODES:
        raise RequestDataError(f"mode must be one of {', '.join(CENSUS_MODES)}")

    if mode != "static":
        if settings.render_enabled:
            try:
                final_url, counts = await run_dom_census(client, url, settings)
                return _asp_response(url, final_url, counts, "rendered-dom", settings)
            except CensusError:
                if mode == "rendered":
                    raise
                log.warning("Rendered census unavailable for %s, falling back to static", url)
        elif mode == "rendered":
            raise CensusError("Rendered census is disabled (RENDER_ENABLED=0)")

    final_url, html = await fetch_html(client, url, settings.fetch_timeout_seconds)
    counts = build_static_counts(html)
    return _asp_response(url, final_url, counts, "static", settings)


def _part(outcome: Union[BaseModel, BaseException]) -> PartResult:
    if isinstance(outcome, HealthcheckError):
        return PartResult(ok=False, error=outcome.message, status=outcome.status_code)
    if isinstance(outcome, BaseException):
        log.error("Audit step failed unexpectedly", exc_info=outcome)
        return PartResult(ok=False, error=str(outcome) or type(outcome).__name__, status=500)
    return PartResult(ok=True, data=outcome.model_dump(by_alias=True))


async def run_full_audit(
    client: httpx.AsyncClient, url: str, settings: Settings, mode: Optional[str] = None
) -> FullAuditResponse:
    """Page-speed and census side by side; either may fail without hiding the other."""
    pagespeed, census = await asyncio.gather(
        run_pagespeed(client, url, settings),
        run_census(client, url, settings, mode),
        return_exceptions=True,
    )
    for outcome in (pagespeed, census):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
    return FullAuditResponse(target_url=url, pagespeed=_part(pagespeed), asp=_part(census))


async def fetch_metadata(client: httpx.AsyncClient, url: Optional[str], settings: Settings) -> Optional[PageMetadata]:
    """Metadata for the prompt; the summary still runs without it."""
    try:
        target = AuditTarget.parse(url)
        final_url, html = await fetch_html(client, target.url, settings.fetch_timeout_seconds)
    except HealthcheckError as e:
        log.warning("Metadata fetch skipped for %s: %s", url, e.message)
        return None
    return extract_page_metadata(html, final_url, settings.content_sample_chars)


async def run_recommendations(
    client: httpx.AsyncClient, request: RecommendationsRequest, settings: Settings
) -> RecommendationsResponse:
    if not request.api_key:
        raise RequestDataError("Missing apiKey")
    try:
        audit = AuditSummaryInput.model_validate(request.audit or {})
    except ValidationError as e:
        raise RequestDataError(f"Invalid audit data: {e.error_count()} problem(s)") from e
    if audit.scores is None:
        raise RequestDataError("Missing audit data")

    metadata = await fetch_metadata(client, audit.final_url or audit.target_url, settings)
    return await summarise_audit(request.api_key, audit, metadata, settings, http_client=client)
