"""
Class names and selectors the census engines look for.

The first-party names come from the CMS component library the scoring
thresholds were tuned against; the generic slider signatures cover the
libraries those components (and most other sites) are built on.
"""

from collections import namedtuple

SECTION = ".section"

# first-party components
ICATCHER_SLIDER = ".w-icatcher-slider"
TESTIMONIALS = ".w-testimonials"
LIBRARY_CONTAINER = ".js-library-list-outer"
LIBRARY_TYPES = {
    "news": ".m-libraries-news-list",
    "products": ".m-libraries-products-list",
    "video": ".m-libraries-video-list",
    "sponsor": ".m-libraries-sponsor-list",
}

AD_SLOTS = {
    "skyscraperLeft": ".skyscraper-left",
    "skyscraperRight": ".skyscraper-right",
    "skyscraperTop": ".skyscraper-top",
    "skyscraperBottom": ".skyscraper-bottom",
}

# generic slider signatures. `slide` is the library's own per-item class,
# `track` the element whose children are the items, `clone` the class the
# library puts on copies it injects for infinite looping.
SliderSignature = namedtuple("SliderSignature", "library root track slide clone")

SLICK = SliderSignature("slick", ".slick-slider", ".slick-track", ".slick-slide", "slick-cloned")
SWIPER = SliderSignature("swiper", ".swiper, .swiper-container", ".swiper-wrapper", ".swiper-slide", "swiper-slide-duplicate")
SPLIDE = SliderSignature("splide", ".splide", ".splide__list", ".splide__slide", "splide__slide--clone")
OWL = SliderSignature("owl", ".owl-carousel", ".owl-stage", ".owl-item", "cloned")

GENERIC_SLIDERS = [SLICK, SWIPER, SPLIDE, OWL]

# swiper loop mode stamps every copy with the index of the slide it copies
SWIPER_INDEX_ATTR = "data-swiper-slide-index"

CAROUSEL_ROOTS = ", ".join([ICATCHER_SLIDER] + [sig.root for sig in GENERIC_SLIDERS])
