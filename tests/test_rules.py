import pytest

from healthcheck.audit.rules import (
    DEFAULT_RULES,
    apply_overrides,
    label_from_score,
    recommend,
    score_counts,
    severity_from_score,
)
from healthcheck.models.schema import CensusCounts, Finding


def make_counts(
    sections=0,
    carousels=None,
    testimonials=None,
    libraries=None,
    images=0,
    videos=0,
    iframes=0,
    ads=None,
):
    carousels = carousels or []
    return CensusCounts.model_validate({
        "sections": sections,
        "carousels": {"count": len(carousels), "slidesPerCarousel": carousels},
        "testimonials": {
            "count": len(testimonials or []),
            "itemsPerBlock": testimonials or [],
        },
        "libraries": libraries or {},
        "media": {"images": images, "videos": videos, "iframes": iframes},
        "adSpace": ads or {},
    })


def finding(result, key):
    return next(f for f in result.findings if f.key == key)


WORST = dict(
    sections=30,
    carousels=[10, 10, 10],
    testimonials=[1, 1, 1],
    libraries={"containers": 2, "types": {"news": 1, "products": 1, "video": 1, "sponsor": 1}},
    images=70,
    videos=5,
    iframes=4,
    ads={"skyscraperLeft": 2, "skyscraperRight": 2, "skyscraperTop": 1},
)


def test_empty_page_scores_full_marks():
    result = score_counts(make_counts())
    assert result.overall.score == 100
    assert result.overall.severity == "good"
    assert result.overall.label == "Good"
    assert result.recommendations == []
    assert all(f.severity == "good" and f.points == 0 for f in result.findings)


def test_one_finding_per_dimension_in_table_order():
    result = score_counts(make_counts())
    assert [f.key for f in result.findings] == [
        "sections", "carousels", "carouselSlides", "testimonials", "libraries",
        "images", "videos", "iframes", "adSpace",
    ]


def test_scoring_is_deterministic():
    counts = make_counts(**WORST)
    first = score_counts(counts).model_dump(by_alias=True)
    second = score_counts(counts).model_dump(by_alias=True)
    assert first == second


def test_worst_case_clamps_to_zero():
    result = score_counts(make_counts(**WORST))
    assert sum(f.points for f in result.findings) == -113
    assert result.overall.score == 0
    assert result.overall.severity == "bad"
    assert result.overall.label == "Heavy"
    assert all(f.severity != "good" for f in result.findings)
    assert len(result.recommendations) == len(result.findings)


@pytest.mark.parametrize(
    "sections, score, severity",
    [(16, 100, "good"), (17, 90, "warn"), (24, 90, "warn"), (25, 82, "bad")],
)
def test_section_boundaries(sections, score, severity):
    result = score_counts(make_counts(sections=sections))
    assert result.overall.score == score
    assert finding(result, "sections").severity == severity


def test_two_carousels_warn_three_are_bad():
    assert finding(score_counts(make_counts(carousels=[2])), "carousels").severity == "good"
    two = finding(score_counts(make_counts(carousels=[2, 2])), "carousels")
    assert (two.severity, two.points) == ("warn", -10)
    assert two.value == "2 carousels / 4 slides"
    three = finding(score_counts(make_counts(carousels=[1, 1, 1])), "carousels")
    assert (three.severity, three.points) == ("bad", -15)


def test_slide_totals():
    assert finding(score_counts(make_counts(carousels=[16])), "carouselSlides").severity == "good"
    warn = finding(score_counts(make_counts(carousels=[17])), "carouselSlides")
    assert (warn.severity, warn.points) == ("warn", -8)
    bad = finding(score_counts(make_counts(carousels=[25])), "carouselSlides")
    assert (bad.severity, bad.points) == ("bad", -8)


def test_testimonials_warn_on_blocks_or_items():
    assert finding(score_counts(make_counts(testimonials=[9, 9])), "testimonials").severity == "good"
    assert finding(score_counts(make_counts(testimonials=[10, 9])), "testimonials").severity == "warn"
    assert finding(score_counts(make_counts(testimonials=[1, 1, 1])), "testimonials").severity == "warn"


def test_library_tiers():
    containers = make_counts(libraries={"containers": 2, "types": {"news": 1}})
    assert finding(score_counts(containers), "libraries").severity == "warn"
    three = make_counts(libraries={"containers": 1, "types": {"news": 1, "products": 1, "video": 1}})
    assert finding(score_counts(three), "libraries").severity == "warn"
    four = make_counts(libraries={"containers": 1, "types": {"news": 2, "products": 1, "video": 1}})
    result = finding(score_counts(four), "libraries")
    assert (result.severity, result.points) == ("bad", -10)
    assert result.value == "1 containers / 4 types"


def test_media_and_ad_tiers():
    result = score_counts(make_counts(images=41, videos=3, iframes=2, ads={"skyscraperLeft": 3}))
    assert finding(result, "images").points == -7
    assert finding(result, "videos").points == -10
    assert finding(result, "iframes").points == -8
    assert finding(result, "adSpace").points == -8
    assert result.overall.score == 100 - 7 - 10 - 8 - 8


def test_recommendations_biggest_deduction_first():
    result = score_counts(make_counts(images=41, iframes=4))
    assert [r.key for r in result.recommendations] == ["iframes", "images"]
    assert result.recommendations[0].title == "Minimise third-party embeds"


def test_recommendation_ties_keep_table_order():
    result = score_counts(make_counts(sections=17, carousels=[1, 1], videos=3))
    assert [r.key for r in result.recommendations] == ["sections", "carousels", "videos"]


@pytest.mark.parametrize(
    "score, severity, label",
    [(100, "good", "Good"), (85, "good", "Good"), (84, "warn", "Needs attention"),
     (65, "warn", "Needs attention"), (64, "bad", "Heavy"), (0, "bad", "Heavy")],
)
def test_overall_bands(score, severity, label):
    assert severity_from_score(score) == severity
    assert label_from_score(score) == label


def test_rendered_sections_are_normalised():
    counts = CensusCounts.model_validate({"sections": {"total": 17, "breakdown": []}})
    assert finding(score_counts(counts), "sections").severity == "warn"


def test_thresholds_are_reported():
    result = score_counts(make_counts())
    assert finding(result, "sections").threshold == {"warnAbove": 16, "badAbove": 24}
    assert finding(result, "testimonials").threshold == {
        "warnBlocksAtOrAbove": 3,
        "warnItemsAbove": 18,
    }


def test_unknown_dimension_recommendation_falls_back_to_finding():
    rec = recommend(Finding(key="fonts", label="Web fonts", value=9, severity="warn", points=-5,
                            message="Too many font files."))
    assert rec.title == "Web fonts"
    assert rec.action == "Too many font files."


def test_overrides_move_thresholds_only():
    rules = apply_overrides(DEFAULT_RULES, {"sections": {"warn": 20, "bad": 30}})
    assert finding(score_counts(make_counts(sections=20), rules), "sections").severity == "good"
    hit = finding(score_counts(make_counts(sections=21), rules), "sections")
    assert (hit.severity, hit.points) == ("warn", -10)
    assert hit.threshold == {"warnAbove": 20, "badAbove": 30}
    # the default table is untouched
    assert finding(score_counts(make_counts(sections=21)), "sections").severity == "warn"


def test_overrides_per_metric():
    rules = apply_overrides(DEFAULT_RULES, {"testimonials": {"warn": {"items": 30}}})
    assert finding(score_counts(make_counts(testimonials=[25]), rules), "testimonials").severity == "good"
    assert finding(score_counts(make_counts(testimonials=[1, 1, 1]), rules), "testimonials").severity == "warn"


def test_overrides_reject_unknown_names():
    with pytest.raises(ValueError):
        apply_overrides(DEFAULT_RULES, {"fonts": {"warn": 1}})
    with pytest.raises(ValueError):
        apply_overrides(DEFAULT_RULES, {"testimonials": {"bad": 3}})
