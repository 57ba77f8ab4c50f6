"""
Shared fixtures. Nothing here touches the network: every HTTP call goes
through httpx.MockTransport.
"""
import asyncio

import httpx
import pytest

from healthcheck.config import Settings

PAGE_URL = "https://example.com/"

SAMPLE_HTML = """
<!doctype html>
<html lang="en-GB">
<head>
  <title>  Ice Gaming | Home </title>
  <meta name="description" content="Play the best games.">
  <meta name="keywords" content="games, slots">
  <link rel="canonical" href="/home">
  <style>.x { color: red }</style>
</head>
<body>
  <div class="section" id="hero">
    <h1>Welcome</h1>
    <div class="w-icatcher-slider">
      <div class="slick-slider">
        <div class="slick-track">
          <div class="slick-slide slick-cloned"><img src="/a.jpg"></div>
          <div class="slick-slide"><img src="/a.jpg"></div>
          <div class="slick-slide"><img src="/b.jpg"></div>
          <div class="slick-slide slick-cloned"><img src="/b.jpg"></div>
        </div>
      </div>
    </div>
  </div>
  <div class="section">
    <h2>What players say</h2>
    <div class="w-testimonials">
      <div class="swiper">
        <div class="swiper-wrapper">
          <div class="swiper-slide">One</div>
          <div class="swiper-slide">Two</div>
          <div class="swiper-slide swiper-slide-duplicate">One</div>
        </div>
      </div>
    </div>
  </div>
  <div class="section">
    <div class="js-library-list-outer"><div class="m-libraries-news-list"></div></div>
    <iframe src="https://www.youtube.com/embed/x"></iframe>
    <video src="/v.mp4"></video>
  </div>
  <div class="skyscraper-left"></div>
  <div class="skyscraper-right"></div>
  <script>console.log("hidden")</script>
</body>
</html>
"""


def psi_body():
    return {
        "loadingExperience": {"id": "https://example.com/"},
        "originLoadingExperience": {
            "id": "https://example.com",
            "metrics": {
                "LARGEST_CONTENTFUL_PAINT_MS": {
                    "percentile": 2400,
                    "distributions": [{"min": 0, "max": 2500, "proportion": 0.8}],
                    "category": "FAST",
                },
                "CUMULATIVE_LAYOUT_SHIFT_SCORE": {"percentile": 5, "category": "FAST"},
            },
        },
        "lighthouseResult": {
            "requestedUrl": "https://example.com/",
            "finalUrl": "https://example.com/home",
            "fetchTime": "2026-10-19T10:00:00.000Z",
            "categories": {
                "performance": {"score": 0.53},
                "accessibility": {"score": 0.9},
                "best-practices": {"score": 1},
                "seo": {"score": None},
            },
            "audits": {
                "first-contentful-paint": {"numericValue": 1200.5},
                "largest-contentful-paint": {"numericValue": 3100},
                "cumulative-layout-shift": {"numericValue": 0.02},
                "total-blocking-time": {"numericValue": 250},
                "speed-index": {"numericValue": 2800},
                "server-response-time": {"numericValue": "n/a"},
                "total-byte-weight": {"numericValue": 2048000},
                "dom-size": {"numericValue": 900, "details": {"type": "table", "items": []}},
                "render-blocking-resources": {
                    "title": "Eliminate render-blocking resources",
                    "description": "Resources are blocking the first paint.",
                    "details": {"type": "opportunity", "overallSavingsMs": 300},
                },
                "unused-javascript": {
                    "title": "Reduce unused JavaScript",
                    "details": {"type": "opportunity", "overallSavingsMs": 900},
                },
                "uses-long-cache-ttl": {
                    "title": "Serve static assets with an efficient cache policy",
                    "details": {"type": "table"},
                },
            },
        },
    }


@pytest.fixture
def settings():
    return Settings(
        psi_api_key="test-key",
        render_enabled=False,
        allowed_origins=["http://localhost:5173"],
        scroll_steps=2,
        scroll_pause_ms=0,
        probe_concurrency=2,
    )


@pytest.fixture
def sample_html():
    return SAMPLE_HTML


@pytest.fixture
def psi_payload():
    return psi_body()


@pytest.fixture
def run():
    """Drive a coroutine to completion from a plain test function."""
    return asyncio.run


@pytest.fixture
def mock_client():
    """Build an AsyncClient whose requests are answered by `handler`."""

    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


def pytest_configure(config):
    config.addinivalue_line("markers", "browser: runs against a real headless Chromium")
