from typing import Optional, List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from healthcheck.core.utils import collapse_whitespace, trim_words
from healthcheck.models.schema import PageMetadata

MAX_HEADINGS = 10


def _meta(soup: BeautifulSoup, name: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"name": name}) or soup.find("meta", attrs={"property": f"og:{name}"})
    if tag and tag.get("content"):
        return collapse_whitespace(tag["content"]) or None
    return None


def _headings(soup: BeautifulSoup, level: str) -> List[str]:
    texts = [collapse_whitespace(h.get_text(" ")) for h in soup.find_all(level)]
    return [t for t in texts if t][:MAX_HEADINGS]


def extract_page_metadata(html: str, url: Optional[str] = None, sample_chars: int = 1500) -> PageMetadata:
    """SEO-relevant fields for the LLM prompt. Not used for scoring."""
    soup = BeautifulSoup(html or "", "lxml")

    title = collapse_whitespace(soup.title.get_text()) if soup.title else ""
    html_tag = soup.find("html")
    lang = html_tag.get("lang") if html_tag else None
    canonical_tag = soup.find("link", rel=lambda v: v and "canonical" in v.lower())
    canonical = None
    if canonical_tag and canonical_tag.get("href"):
        canonical = urljoin(url or "", canonical_tag["href"])

    h1 = _headings(soup, "h1")
    h2 = _headings(soup, "h2")

    for tag in soup(["script", "style", "noscript", "template", "svg"]):
        tag.decompose()
    body = soup.body or soup
    sample = trim_words(collapse_whitespace(body.get_text(" ")), sample_chars)

    return PageMetadata(
        url=url,
        title=title or None,
        meta_description=_meta(soup, "description"),
        meta_keywords=_meta(soup, "keywords"),
        canonical=canonical,
        lang=lang or None,
        h1=h1,
        h2=h2,
        content_sample=sample or None,
    )
