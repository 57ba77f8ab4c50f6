import httpx
import pytest

from healthcheck.core import audit as audit_mod
from healthcheck.core.audit import fetch_metadata, run_census, run_full_audit, run_recommendations
from healthcheck.core.errors import CensusError, RequestDataError, UpstreamError
from healthcheck.models.schema import CensusCounts, RecommendationsRequest

from conftest import PAGE_URL


def site(html, psi_status=200, psi_payload=None):
    def handler(request):
        if request.url.host == "www.googleapis.com":
            if psi_status >= 400:
                return httpx.Response(psi_status, json={"error": {"message": "Backend error"}})
            return httpx.Response(200, json=psi_payload)
        if request.url.host == "example.com":
            return httpx.Response(200, text=html, headers={"content-type": "text/html"})
        return httpx.Response(404)

    return handler


def census(run, mock_client, handler, settings, mode=None):
    async def go():
        async with mock_client(handler) as client:
            return await run_census(client, PAGE_URL, settings, mode)

    return run(go())


def test_static_mode(run, mock_client, settings, sample_html):
    result = census(run, mock_client, site(sample_html), settings, "static")
    assert result.mode == "static"
    assert result.target_url == PAGE_URL
    assert result.final_url == PAGE_URL
    assert result.counts.sections == 3
    assert result.asp.overall.score == 100


def test_auto_without_browser_is_static(run, mock_client, settings, sample_html):
    assert census(run, mock_client, site(sample_html), settings).mode == "static"


def test_auto_falls_back_when_rendering_fails(run, mock_client, settings, sample_html, monkeypatch):
    async def broken(client, url, settings):
        raise CensusError("Rendered census failed: browser crashed")

    monkeypatch.setattr(audit_mod, "run_dom_census", broken)
    enabled = settings.model_copy(update={"render_enabled": True})
    assert census(run, mock_client, site(sample_html), enabled, "auto").mode == "static"

    with pytest.raises(CensusError):
        census(run, mock_client, site(sample_html), enabled, "rendered")


def test_rendered_mode_uses_browser_result(run, mock_client, settings, monkeypatch):
    async def rendered(client, url, settings):
        return url + "final", CensusCounts.model_validate({"sections": {"total": 25, "breakdown": []}})

    monkeypatch.setattr(audit_mod, "run_dom_census", rendered)
    enabled = settings.model_copy(update={"render_enabled": True})
    result = census(run, mock_client, site(""), enabled, "rendered")
    assert result.mode == "rendered-dom"
    assert result.final_url == PAGE_URL + "final"
    assert result.asp.overall.score == 82


def test_rendered_mode_needs_browser(run, mock_client, settings):
    with pytest.raises(CensusError):
        census(run, mock_client, site(""), settings, "rendered")


def test_unknown_mode(run, mock_client, settings):
    with pytest.raises(RequestDataError):
        census(run, mock_client, site(""), settings, "screenshot")


def test_scoring_overrides_apply(run, mock_client, settings, sample_html):
    strict = settings.model_copy(update={"scoring_overrides": {"sections": {"warn": 2}}})
    result = census(run, mock_client, site(sample_html), strict, "static")
    assert result.asp.overall.score == 90


def test_fetch_failure_propagates(run, mock_client, settings):
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(UpstreamError) as exc:
        census(run, mock_client, handler, settings, "static")
    assert exc.value.status_code == 503


def test_full_audit_partial_failure(run, mock_client, settings, sample_html):
    async def go():
        async with mock_client(site(sample_html, psi_status=500)) as client:
            return await run_full_audit(client, PAGE_URL, settings, "static")

    result = run(go())
    assert result.pagespeed.ok is False
    assert result.pagespeed.status == 500
    assert result.pagespeed.error == "Backend error"
    assert result.asp.ok is True
    assert result.asp.data["mode"] == "static"
    assert result.asp.data["asp"]["overall"]["score"] == 100


def test_full_audit_both_parts(run, mock_client, settings, sample_html, psi_payload):
    async def go():
        async with mock_client(site(sample_html, psi_payload=psi_payload)) as client:
            return await run_full_audit(client, PAGE_URL, settings, "static")

    result = run(go())
    assert result.pagespeed.ok and result.asp.ok
    assert result.pagespeed.data["scores"]["performance"] == 53


def test_metadata_is_optional(run, mock_client, settings):
    def handler(request):
        return httpx.Response(404)

    async def go():
        async with mock_client(handler) as client:
            return (
                await fetch_metadata(client, PAGE_URL, settings),
                await fetch_metadata(client, None, settings),
            )

    assert run(go()) == (None, None)


@pytest.mark.parametrize(
    "body, message",
    [
        ({}, "Missing apiKey"),
        ({"apiKey": "sk-test"}, "Missing audit data"),
        ({"apiKey": "sk-test", "audit": {"targetUrl": PAGE_URL}}, "Missing audit data"),
    ],
)
def test_recommendations_input_checks(run, mock_client, settings, body, message):
    def handler(request):
        raise AssertionError("no request expected")

    async def go():
        async with mock_client(handler) as client:
            await run_recommendations(client, RecommendationsRequest.model_validate(body), settings)

    with pytest.raises(RequestDataError) as exc:
        run(go())
    assert exc.value.message == message
    assert exc.value.status_code == 400


def test_recommendations_reject_malformed_audit(run, mock_client, settings):
    async def go():
        async with mock_client(site("")) as client:
            body = {"apiKey": "sk-test", "audit": {"scores": {"performance": "fast"}}}
            await run_recommendations(client, RecommendationsRequest.model_validate(body), settings)

    with pytest.raises(RequestDataError):
        run(go())
