import re
from typing import Optional
from urllib.parse import urlsplit, unquote


def default_headers():
    return {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/122.0.0.0 Safari/537.36 ASP-Healthcheck/1.0"
        ),
        "Accept": "text/html,application/xhtml+xml",
        "Accept-Language": "en-GB,en;q=0.9",
    }


def collapse_whitespace(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def trim_words(text: str, limit: int) -> str:
    """Cut `text` to at most `limit` chars, ellipsis included, without splitting a word."""
    if len(text) <= limit:
        return text
    cut = text[:max(limit - 1, 0)]
    space = cut.rfind(" ")
    if space > limit // 2:
        cut = cut[:space]
    return cut.rstrip() + "…"


def resource_name(url: str) -> str:
    parts = urlsplit(url)
    name = unquote(parts.path.rstrip("/").rsplit("/", 1)[-1])
    return name or parts.netloc or url


def kb(size: int) -> float:
    return round(size / 1024, 2)


def mb(size: int) -> float:
    return round(size / (1024 * 1024), 2)
