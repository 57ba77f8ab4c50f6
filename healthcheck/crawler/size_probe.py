import re
import asyncio
import logging
from typing import Optional, List, Tuple, Callable, Awaitable, TypeVar, Sequence

import httpx

from healthcheck.core.utils import default_headers, resource_name, kb, mb
from healthcheck.models.schema import TopImage

log = logging.getLogger("healthcheck")

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 6
DEFAULT_MAX_CANDIDATES = 40
DEFAULT_TIMEOUT = 15.0

_CONTENT_RANGE_RE = re.compile(r"/\s*(\d+)\s*$")


async def map_with_concurrency(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> List[R]:
    """
    Run `worker` over `items` with at most `concurrency` calls outstanding.

    Results come back in input order; completion order is whatever the I/O
    gives us. `worker` is expected to handle its own failures; an exception
    that escapes it fails the whole batch.
    """
    results: List[Optional[R]] = [None] * len(items)
    pending = iter(enumerate(items))

    async def run() -> None:
        # next() never awaits, so workers can share the iterator
        for i, item in pending:
            results[i] = await worker(item)

    workers = max(1, min(concurrency, len(items)))
    if items:
        await asyncio.gather(*(run() for _ in range(workers)))
    return results


def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
    raw = (headers.get(name) or "").strip()
    if raw.isdigit():
        return int(raw)
    return None


def _range_total(content_range: Optional[str]) -> Optional[int]:
    # "bytes 0-0/12345" -> 12345; "bytes 0-0/*" -> None
    if not content_range:
        return None
    m = _CONTENT_RANGE_RE.search(content_range)
    return int(m.group(1)) if m else None


async def probe_size(client: httpx.AsyncClient, url: str, timeout: float = DEFAULT_TIMEOUT) -> Optional[int]:
    """
    Byte size of a remote resource, or None.

    Order: HEAD content-length, then a one-byte ranged GET (content-range
    total, then its content-length), then the length of whatever body the
    ranged GET returned. The last step undercounts when the server honours
    the range without declaring a total.
    """
    headers = default_headers()
    headers["Accept"] = "image/avif,image/webp,image/*,*/*;q=0.8"
    try:
        head = await client.head(url, headers=headers, timeout=timeout, follow_redirects=True)
        if head.is_success:
            size = _int_header(head.headers, "content-length")
            if size:
                return size
    except httpx.TimeoutException:
        log.debug("HEAD timed out for %s", url)
        return None
    except (httpx.HTTPError, httpx.InvalidURL):
        pass  # some servers refuse HEAD; the ranged GET below still has a go

    headers["Range"] = "bytes=0-0"
    try:
        async with client.stream("GET", url, headers=headers, timeout=timeout, follow_redirects=True) as r:
            if r.status_code >= 400:
                return None
            total = _range_total(r.headers.get("content-range"))
            if total is not None:
                return total
            size = _int_header(r.headers, "content-length")
            if size is not None:
                return size
            body = await r.aread()
            return len(body)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.debug("size probe failed for %s: %s", url, e)
        return None


async def probe_sizes(
    client: httpx.AsyncClient,
    urls: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT,
    concurrency: int = DEFAULT_CONCURRENCY,
    limit: int = DEFAULT_MAX_CANDIDATES,
) -> List[Tuple[str, int]]:
    """(url, bytes) for every candidate that could be sized; failures are left out."""
    candidates = list(dict.fromkeys(u for u in urls if u))[:limit]

    async def one(u: str) -> Optional[int]:
        return await probe_size(client, u, timeout)

    sizes = await map_with_concurrency(candidates, one, concurrency)
    sized = [(u, s) for u, s in zip(candidates, sizes) if s is not None]
    if len(sized) < len(candidates):
        log.warning("Size probes: %d of %d candidates could not be sized", len(candidates) - len(sized), len(candidates))
    return sized


async def top_images(
    client: httpx.AsyncClient,
    urls: Sequence[str],
    count: int = 3,
    timeout: float = DEFAULT_TIMEOUT,
    concurrency: int = DEFAULT_CONCURRENCY,
    limit: int = DEFAULT_MAX_CANDIDATES,
) -> List[TopImage]:
    sized = await probe_sizes(client, urls, timeout=timeout, concurrency=concurrency, limit=limit)
    # sorted() is stable, so equal sizes keep page order
    sized = sorted(sized, key=lambda pair: pair[1], reverse=True)[:count]
    return [
        TopImage(url=u, name=resource_name(u), bytes=size, kb=kb(size), mb=mb(size))
        for u, size in sized
    ]
