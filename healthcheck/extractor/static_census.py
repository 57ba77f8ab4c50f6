import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from healthcheck.extractor import markers
from healthcheck.extractor.markers import SliderSignature
from healthcheck.models.schema import (
    CensusCounts,
    CarouselCounts,
    TestimonialCounts,
    LibraryCounts,
    LibraryTypes,
    MediaCounts,
    AdSpaceCounts,
)

log = logging.getLogger("healthcheck")


def _has_class(el: Tag, cls: str) -> bool:
    return cls in (el.get("class") or [])


def _not_cloned(elements: List[Tag], clone_class: str) -> List[Tag]:
    return [el for el in elements if not _has_class(el, clone_class)]


def carousel_roots(soup: BeautifulSoup) -> List[Tag]:
    """
    Outermost carousel elements in document order. A match nested inside
    another match, or inside a testimonials widget, is not a root of its own.
    """
    found = soup.select(markers.CAROUSEL_ROOTS)
    found_ids = {id(el) for el in found}
    roots = []
    for el in found:
        if any(id(parent) in found_ids for parent in el.parents):
            continue
        if el.find_parent(class_=markers.TESTIMONIALS.lstrip(".")):
            continue
        roots.append(el)
    return roots


def count_without_clones(root: Tag, sig: SliderSignature) -> Optional[int]:
    """
    Real slides for one library signature, or None when the library's markup
    is absent. Items carrying the library's slide class win; otherwise the
    track's children are counted. Clone-marked copies are excluded either way.
    """
    slides = root.select(sig.slide)
    if slides:
        return len(_not_cloned(slides, sig.clone))
    track = root.select_one(sig.track)
    if track is not None:
        children = [c for c in track.children if isinstance(c, Tag)]
        return len(_not_cloned(children, sig.clone))
    return None


def count_slides(root: Tag) -> int:
    for sig in markers.GENERIC_SLIDERS:
        n = count_without_clones(root, sig)
        if n is not None:
            return n
    return 0


def _carousel_type(roots: List[Tag]) -> Optional[str]:
    if not roots:
        return None
    first_party = [r for r in roots if _has_class(r, markers.ICATCHER_SLIDER.lstrip("."))]
    if len(first_party) == len(roots):
        return "icatcher"
    if not first_party:
        return "generic"
    return "mixed"


def count_carousels(soup: BeautifulSoup) -> CarouselCounts:
    roots = carousel_roots(soup)
    return CarouselCounts(
        count=len(roots),
        slides_per_carousel=[count_slides(r) for r in roots],
        type=_carousel_type(roots),
    )


def count_testimonial_items(block: Tag) -> int:
    # both libraries have been used for this widget; take whichever saw more
    wrapper = block.select_one(markers.SWIPER.track)
    scope = wrapper if wrapper is not None else block
    slick = _not_cloned(scope.select(markers.SLICK.slide), markers.SLICK.clone)
    swiper = _not_cloned(scope.select(markers.SWIPER.slide), markers.SWIPER.clone)
    return max(len(slick), len(swiper))


def count_testimonials(soup: BeautifulSoup) -> TestimonialCounts:
    blocks = soup.select(markers.TESTIMONIALS)
    return TestimonialCounts(
        count=len(blocks),
        items_per_block=[count_testimonial_items(b) for b in blocks],
    )


def count_libraries(soup: BeautifulSoup) -> LibraryCounts:
    types = {name: len(soup.select(sel)) for name, sel in markers.LIBRARY_TYPES.items()}
    return LibraryCounts(
        containers=len(soup.select(markers.LIBRARY_CONTAINER)),
        types=LibraryTypes(**types),
    )


def count_ad_space(soup: BeautifulSoup) -> AdSpaceCounts:
    return AdSpaceCounts.model_validate(
        {field: len(soup.select(sel)) for field, sel in markers.AD_SLOTS.items()}
    )


def build_static_counts(html: str) -> CensusCounts:
    """Census from raw markup. Sees nothing that only client-side scripts create."""
    soup = BeautifulSoup(html or "", "lxml")
    counts = CensusCounts(
        sections=len(soup.select(markers.SECTION)),
        carousels=count_carousels(soup),
        testimonials=count_testimonials(soup),
        libraries=count_libraries(soup),
        media=MediaCounts(
            images=len(soup.find_all("img")),
            videos=len(soup.find_all("video")),
            iframes=len(soup.find_all("iframe")),
        ),
        ad_space=count_ad_space(soup),
    )
    log.info(
        "Static census: %d sections, %d carousels, %d images",
        counts.section_total, counts.carousels.count, counts.media.images,
    )
    return counts
