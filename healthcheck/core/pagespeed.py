import logging
from typing import Optional, Dict, Any, List

import httpx

from healthcheck.config import Settings
from healthcheck.core.errors import ConfigError, UpstreamError
from healthcheck.models.schema import (
    PageSpeedAudit,
    CategoryScores,
    LabMetrics,
    FieldData,
    FieldMetric,
    Opportunity,
    Diagnostics,
)

log = logging.getLogger("healthcheck")

CATEGORIES = ["performance", "accessibility", "best-practices", "seo"]


def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return v


def _dict(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def to100(v: Any) -> Optional[int]:
    n = _number(v)
    return round(n * 100) if n is not None else None


def pick_scores(lhr: Dict[str, Any]) -> CategoryScores:
    c = _dict(lhr.get("categories"))
    score = lambda key: to100(_dict(c.get(key)).get("score"))
    return CategoryScores(
        performance=score("performance"),
        accessibility=score("accessibility"),
        best_practices=score("best-practices"),
        seo=score("seo"),
    )


def _numeric(audits: Dict[str, Any], audit_id: str) -> Optional[float]:
    return _number(_dict(audits.get(audit_id)).get("numericValue"))


def _details(audits: Dict[str, Any], audit_id: str) -> Optional[Dict[str, Any]]:
    details = _dict(audits.get(audit_id)).get("details")
    return details if isinstance(details, dict) else None


def pick_lab_metrics(lhr: Dict[str, Any]) -> LabMetrics:
    a = _dict(lhr.get("audits"))
    return LabMetrics(
        fcp_ms=_numeric(a, "first-contentful-paint"),
        lcp_ms=_numeric(a, "largest-contentful-paint"),
        cls=_numeric(a, "cumulative-layout-shift"),
        tbt_ms=_numeric(a, "total-blocking-time"),
        si_ms=_numeric(a, "speed-index"),
        ttfb_ms=_numeric(a, "server-response-time"),
    )


def pick_field_data(data: Dict[str, Any]) -> Optional[FieldData]:
    """Real-user percentiles; page-level when the page has them, else origin-level."""
    exp = None
    for key in ("loadingExperience", "originLoadingExperience"):
        candidate = _dict(data.get(key))
        if candidate.get("metrics"):
            exp = candidate
            break
    if exp is None:
        return None
    metrics = _dict(exp.get("metrics"))

    def metric(key: str) -> Optional[FieldMetric]:
        v = metrics.get(key)
        if not isinstance(v, dict):
            return None
        distributions = v.get("distributions")
        return FieldMetric(
            percentile=_number(v.get("percentile")),
            distributions=distributions if isinstance(distributions, list) else None,
            category=v.get("category"),
        )

    return FieldData(
        id=exp.get("id"),
        lcp=metric("LARGEST_CONTENTFUL_PAINT_MS"),
        inp=metric("INTERACTION_TO_NEXT_PAINT"),
        cls=metric("CUMULATIVE_LAYOUT_SHIFT_SCORE"),
        fcp=metric("FIRST_CONTENTFUL_PAINT_MS"),
        ttfb=metric("EXPERIMENTAL_TIME_TO_FIRST_BYTE"),
    )


def pick_opportunities(lhr: Dict[str, Any], limit: int = 8) -> List[Opportunity]:
    opps = []
    for audit_id, a in _dict(lhr.get("audits")).items():
        details = _dict(_dict(a).get("details"))
        if details.get("type") != "opportunity":
            continue
        opps.append(Opportunity(
            id=audit_id,
            title=a.get("title"),
            description=a.get("description"),
            savings_ms=_number(details.get("overallSavingsMs")),
        ))
    opps.sort(key=lambda o: o.savings_ms or 0, reverse=True)
    return opps[:limit]


def pick_diagnostics(lhr: Dict[str, Any]) -> Diagnostics:
    a = _dict(lhr.get("audits"))
    return Diagnostics(
        total_byte_weight=_numeric(a, "total-byte-weight"),
        dom_size=_details(a, "dom-size"),
        third_party_summary=_details(a, "third-party-summary"),
        resource_summary=_details(a, "resource-summary"),
        network_requests=_details(a, "network-requests"),
        mainthread_work=_details(a, "mainthread-work-breakdown"),
        bootup_time=_details(a, "bootup-time"),
    )


def build_pagespeed_audit(target_url: str, data: Dict[str, Any], strategy: Optional[str] = None) -> PageSpeedAudit:
    lhr = _dict(data.get("lighthouseResult"))
    if not lhr.get("categories"):
        raise UpstreamError("No lighthouseResult.categories returned by PSI")
    return PageSpeedAudit(
        target_url=target_url,
        requested_url=lhr.get("requestedUrl"),
        final_url=lhr.get("finalUrl") or lhr.get("finalDisplayedUrl"),
        fetch_time=lhr.get("fetchTime"),
        strategy=strategy,
        scores=pick_scores(lhr),
        metrics=pick_lab_metrics(lhr),
        field_data=pick_field_data(data),
        opportunities=pick_opportunities(lhr, 8),
        diagnostics=pick_diagnostics(lhr),
    )


async def run_pagespeed(client: httpx.AsyncClient, url: str, settings: Settings) -> PageSpeedAudit:
    if not settings.psi_api_key:
        raise ConfigError("Missing PSI_API_KEY env var")

    params = [("url", url), ("key", settings.psi_api_key), ("strategy", settings.psi_strategy)]
    params += [("category", c) for c in CATEGORIES]
    try:
        r = await client.get(settings.psi_endpoint, params=params, timeout=settings.psi_timeout_seconds)
    except httpx.HTTPError as e:
        log.error("PSI request failed: %s", e)
        raise UpstreamError(f"PageSpeed request failed: {e}") from e

    try:
        data = r.json()
    except ValueError:
        data = None
    data = _dict(data)

    if r.status_code >= 400:
        message = _dict(data.get("error")).get("message") or r.text or f"PSI returned {r.status_code}"
        log.warning("PSI returned %s: %s", r.status_code, message)
        raise UpstreamError(message, r.status_code)

    log.info(
        "PSI loadingExperience: %s (metrics=%s), originLoadingExperience: %s (metrics=%s)",
        _dict(data.get("loadingExperience")).get("id"),
        bool(_dict(data.get("loadingExperience")).get("metrics")),
        _dict(data.get("originLoadingExperience")).get("id"),
        bool(_dict(data.get("originLoadingExperience")).get("metrics")),
    )
    return build_pagespeed_audit(url, data, settings.psi_strategy)
