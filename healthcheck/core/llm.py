import re
import json
import logging
from typing import Optional, Dict, Any, List

import httpx
import openai
from openai import AsyncOpenAI

from healthcheck.config import Settings
from healthcheck.core.errors import UpstreamError
from healthcheck.models.schema import AuditSummaryInput, PageMetadata, RecommendationsResponse

log = logging.getLogger("healthcheck")

MAX_KEYWORDS = 40
NO_RECOMMENDATIONS = "No recommendations returned."

SYSTEM_PROMPT = "You write concise, high-signal audit recommendations."

AUDIT_PROMPT = """
You are an expert web performance & accessibility auditor.

Given this Lighthouse-style audit summary for ONE page:
- Provide an executive summary (3-5 bullets)
- Provide top 10 recommended actions ranked by impact (each with a why + what to do)
- Split into: Quick wins (same day), Medium (1-3 days), Bigger projects (multi-day)
- Call out likely root causes based on metrics (LCP/CLS/TBT/FCP/Speed Index)
- Where a structural (ASP) score is included, connect its findings to the metrics
- Suggest how to re-test and what to monitor
Use British spellings. Be specific and practical.
Return as Markdown.
"""

KEYWORDS_PROMPT = """
Page metadata (title, description, headings, content sample) is included.
Review the title and meta description for search intent, and finish with a
single line in exactly this form:
Suggested keywords: keyword one, keyword two, keyword three
"""

_KEYWORDS_RE = re.compile(r"suggested keywords\s*[:\-]\s*(.+)", re.IGNORECASE)


def compact_audit(audit: AuditSummaryInput) -> Dict[str, Any]:
    compact = audit.model_dump(
        by_alias=True,
        exclude_none=True,
        include={"target_url", "final_url", "fetch_time", "scores", "metrics"},
    )
    if audit.opportunities:
        compact["opportunities"] = [
            o.model_dump(by_alias=True, exclude_none=True, exclude={"description"})
            for o in audit.opportunities
        ]
    if audit.asp is not None:
        compact["asp"] = {
            "overall": audit.asp.overall.model_dump(by_alias=True),
            "findings": [
                f.model_dump(by_alias=True, include={"key", "label", "value", "severity", "points"})
                for f in audit.asp.findings
                if f.severity != "good"
            ],
        }
    return compact


def build_messages(audit: AuditSummaryInput, metadata: Optional[PageMetadata] = None) -> List[Dict[str, str]]:
    prompt = AUDIT_PROMPT + (KEYWORDS_PROMPT if metadata is not None else "")
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
        {"role": "user", "content": json.dumps(compact_audit(audit))},
    ]
    if metadata is not None:
        messages.append({
            "role": "user",
            "content": json.dumps(metadata.model_dump(by_alias=True, exclude_none=True)),
        })
    return messages


def parse_suggested_keywords(text: Optional[str]) -> List[str]:
    """Keywords from a 'Suggested keywords: a, b, c' line, if the model wrote one."""
    if not text:
        return []
    m = _KEYWORDS_RE.search(text)
    if not m:
        return []
    keywords = [k.strip().strip("*_`").strip() for k in m.group(1).split(",")]
    return [k for k in keywords if k][:MAX_KEYWORDS]


async def summarise_audit(
    api_key: str,
    audit: AuditSummaryInput,
    metadata: Optional[PageMetadata],
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RecommendationsResponse:
    client = AsyncOpenAI(
        api_key=api_key,
        http_client=http_client,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,  # the caller re-triggers
    )
    try:
        response = await client.chat.completions.create(
            model=settings.openai_model,
            messages=build_messages(audit, metadata),
        )
    except openai.APIStatusError as e:
        log.warning("OpenAI returned %s: %s", e.status_code, e.message)
        raise UpstreamError(e.message, e.status_code) from e
    except openai.APIError as e:
        log.error("OpenAI call failed: %s", e)
        raise UpstreamError(f"OpenAI call failed: {e}") from e

    text = "\n".join(
        choice.message.content for choice in response.choices if choice.message and choice.message.content
    ).strip()
    return RecommendationsResponse(
        recommendations=text or NO_RECOMMENDATIONS,
        extracted=metadata,
        suggested_keywords=parse_suggested_keywords(text),
    )
