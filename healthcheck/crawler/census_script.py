from typing import Dict, Any

from healthcheck.extractor import markers
from healthcheck.models.schema import MAX_SECTION_IMAGE_URLS


def census_options() -> Dict[str, Any]:
    """Argument for CENSUS_SCRIPT: the marker vocabulary the static census uses too."""
    return {
        "imageCap": MAX_SECTION_IMAGE_URLS,
        "markers": {
            "section": markers.SECTION,
            "icatcher": markers.ICATCHER_SLIDER,
            "testimonials": markers.TESTIMONIALS,
            "libraryContainer": markers.LIBRARY_CONTAINER,
            "libraryTypes": markers.LIBRARY_TYPES,
            "adSlots": markers.AD_SLOTS,
            "carouselRoots": markers.CAROUSEL_ROOTS,
            "swiperIndexAttr": markers.SWIPER_INDEX_ATTR,
            "sliders": [sig._asdict() for sig in markers.GENERIC_SLIDERS],
        },
    }


# Runs inside the page after the lazy-load scroll. Returns a plain object
# shaped like CensusCounts (rendered mode, totals left to the model).
CENSUS_SCRIPT = r"""
(opts) => {
  const m = opts.markers;
  const cap = opts.imageCap;

  const all = (scope, sel) => Array.from(scope.querySelectorAll(sel));
  const hasClass = (el, c) => Boolean(el.classList && el.classList.contains(c));
  const notCloned = (els, c) => els.filter((el) => !hasClass(el, c));
  const sig = Object.fromEntries(m.sliders.map((s) => [s.library, s]));
  const icatcherClass = m.icatcher.replace(/^\./, "");

  // outermost matches only; sliders inside testimonial widgets belong to the widget
  function carouselRoots() {
    const found = all(document, m.carouselRoots);
    const set = new Set(found);
    return found.filter((el) => {
      for (let p = el.parentElement; p; p = p.parentElement) {
        if (set.has(p)) return false;
      }
      return !el.closest(m.testimonials);
    });
  }

  // library slide class first, then the track's children; clones never count
  function countWithoutClones(root, s) {
    const slides = all(root, s.slide);
    if (slides.length) return notCloned(slides, s.clone).length;
    const track = root.querySelector(s.track);
    if (track) return notCloned(Array.from(track.children), s.clone).length;
    return null;
  }

  // loop mode copies keep the index of the slide they copy, so distinct indexes are exact
  function countSwiper(root, s) {
    const wrapper = root.querySelector(s.track);
    const slides = wrapper
      ? Array.from(wrapper.children).filter((el) => el.matches(s.slide))
      : all(root, s.slide);
    if (!slides.length) return null;
    const indexes = new Set(
      slides
        .map((el) => el.getAttribute(m.swiperIndexAttr))
        .filter((v) => v !== null && v !== "")
    );
    if (indexes.size) return indexes.size;
    return notCloned(slides, s.clone).length;
  }

  function countSlides(root) {
    for (const s of m.sliders) {
      const n = s.library === "swiper" ? countSwiper(root, s) : countWithoutClones(root, s);
      if (n !== null) return n;
    }
    return 0;
  }

  function carouselType(roots) {
    if (!roots.length) return null;
    const firstParty = roots.filter((r) => hasClass(r, icatcherClass)).length;
    if (firstParty === roots.length) return "icatcher";
    if (firstParty === 0) return "generic";
    return "mixed";
  }

  function carouselCounts(roots) {
    return {
      count: roots.length,
      slidesPerCarousel: roots.map(countSlides),
      type: carouselType(roots),
    };
  }

  function testimonialItems(block) {
    const swiper = countSwiper(block, sig.swiper) || 0;
    const slick = countWithoutClones(block, sig.slick) || 0;
    return Math.max(swiper, slick);
  }

  function firstSrcsetUrl(srcset) {
    if (!srcset) return null;
    const first = srcset.split(",")[0].trim().split(/\s+/)[0];
    return first || null;
  }

  // one URL per <img>: what the browser picked, else <picture> candidates, else markup
  function imageCandidate(img) {
    if (img.currentSrc) return img.currentSrc;
    const picture = img.closest("picture");
    if (picture) {
      for (const source of picture.querySelectorAll("source")) {
        const u = firstSrcsetUrl(source.getAttribute("srcset") || source.getAttribute("data-srcset"));
        if (u) return u;
      }
    }
    return (
      img.getAttribute("src") ||
      img.getAttribute("data-src") ||
      img.getAttribute("data-lazy-src") ||
      firstSrcsetUrl(img.getAttribute("srcset") || img.getAttribute("data-srcset"))
    );
  }

  function imageUrls(scope) {
    const urls = [];
    const seen = new Set();
    for (const img of all(scope, "img")) {
      if (urls.length >= cap) break;
      const raw = imageCandidate(img);
      if (!raw || raw.startsWith("data:")) continue;
      let abs;
      try {
        abs = new URL(raw, document.baseURI).href;
      } catch (e) {
        continue;
      }
      if (!/^https?:/i.test(abs) || seen.has(abs)) continue;
      seen.add(abs);
      urls.push(abs);
    }
    return urls;
  }

  const roots = carouselRoots();
  const sections = all(document, m.section);

  const breakdown = sections.map((section, index) => {
    const inside = roots.filter((r) => section.contains(r));
    return {
      index,
      id: section.id || null,
      className: typeof section.className === "string" ? section.className : null,
      images: all(section, "img").length,
      videos: all(section, "video").length,
      iframes: all(section, "iframe").length,
      carousels: carouselCounts(inside),
      imageUrls: imageUrls(section),
    };
  });

  const testimonials = all(document, m.testimonials);

  const libraryTypes = {};
  for (const [name, sel] of Object.entries(m.libraryTypes)) {
    libraryTypes[name] = all(document, sel).length;
  }

  const adSpace = {};
  for (const [field, sel] of Object.entries(m.adSlots)) {
    adSpace[field] = all(document, sel).length;
  }

  return {
    sections: { total: sections.length, breakdown },
    carousels: carouselCounts(roots),
    testimonials: {
      count: testimonials.length,
      itemsPerBlock: testimonials.map(testimonialItems),
    },
    libraries: {
      containers: all(document, m.libraryContainer).length,
      types: libraryTypes,
    },
    media: {
      images: all(document, "img").length,
      videos: all(document, "video").length,
      iframes: all(document, "iframe").length,
    },
    adSpace,
  };
}
"""
