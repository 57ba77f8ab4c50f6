"""
Structural health score.

Scoring philosophy:
- Start at 100
- Each dimension walks its tiers worst-first; the first tier whose
  condition holds deducts its points, otherwise the dimension is "good"
- Exactly one finding per dimension, clamp once at the end
- Recommendations are the non-good findings, biggest deduction first

The rule table is data: thresholds can be overridden from configuration
(see `apply_overrides`) and a new dimension is a new `Rule`, not new code.
No I/O happens here.
"""
import operator
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple, Union, Any

from healthcheck.models.schema import CensusCounts, Finding, Overall, Recommendation, ScoreResult

START_SCORE = 100

# (metric, op, threshold)
Condition = Tuple[str, str, int]

_OPS = {
    ">": (operator.gt, "Above"),
    ">=": (operator.ge, "AtOrAbove"),
    "==": (operator.eq, "Equals"),
}


@dataclass(frozen=True)
class Tier:
    severity: str
    points: int
    message: str
    any_of: Tuple[Condition, ...]

    def matches(self, metrics: Dict[str, int]) -> bool:
        return any(_OPS[op][0](metrics[metric], threshold) for metric, op, threshold in self.any_of)


@dataclass(frozen=True)
class Rule:
    key: str
    label: str
    display: Callable[[Dict[str, int]], Union[int, str]]
    tiers: Tuple[Tier, ...]  # worst first
    good_message: str

    def threshold(self) -> Dict[str, int]:
        metrics = {metric for tier in self.tiers for metric, _, _ in tier.any_of}
        out = {}
        for tier in reversed(self.tiers):
            for metric, op, value in tier.any_of:
                name = metric[0].upper() + metric[1:] if len(metrics) > 1 else ""
                out[f"{tier.severity}{name}{_OPS[op][1]}"] = value
        return out

    def evaluate(self, metrics: Dict[str, int]) -> Finding:
        for tier in self.tiers:
            if tier.matches(metrics):
                severity, points, message = tier.severity, tier.points, tier.message
                break
        else:
            severity, points, message = "good", 0, self.good_message
        return Finding(
            key=self.key,
            label=self.label,
            value=self.display(metrics),
            severity=severity,
            points=points,
            message=message,
            threshold=self.threshold(),
        )


def census_metrics(counts: CensusCounts) -> Dict[str, int]:
    return {
        "sections": counts.section_total,
        "carousels": counts.carousels.count,
        "slides": counts.carousels.slides_total,
        "blocks": counts.testimonials.count,
        "items": counts.testimonials.items_total,
        "containers": counts.libraries.containers,
        "types": counts.libraries.types_total,
        "images": counts.media.images,
        "videos": counts.media.videos,
        "iframes": counts.media.iframes,
        "adSlots": counts.ad_space.total,
    }


def _metric(name: str) -> Callable[[Dict[str, int]], int]:
    return lambda m: m[name]


DEFAULT_RULES: Tuple[Rule, ...] = (
    Rule(
        key="sections",
        label="Sections (.section)",
        display=_metric("sections"),
        tiers=(
            Tier("bad", -18, "High number of sections can increase DOM complexity and layout work.",
                 (("sections", ">", 24),)),
            Tier("warn", -10, "Consider reducing sections or combining smaller blocks.",
                 (("sections", ">", 16),)),
        ),
        good_message="Section count looks reasonable.",
    ),
    Rule(
        key="carousels",
        label="Carousels",
        display=lambda m: f"{m['carousels']} carousels / {m['slides']} slides",
        tiers=(
            Tier("bad", -15, "Multiple carousels can significantly increase JS and image load.",
                 (("carousels", ">=", 3),)),
            Tier("warn", -10, "Limit carousels where possible, and avoid heavy slides above the fold.",
                 (("carousels", ">", 1),)),
        ),
        good_message="Carousel usage looks controlled.",
    ),
    Rule(
        key="carouselSlides",
        label="Carousel slides total",
        display=_metric("slides"),
        tiers=(
            Tier("bad", -8, "Large numbers of slides often means many images and heavy layout work.",
                 (("slides", ">", 24),)),
            Tier("warn", -8, "Large numbers of slides often means many images and heavy layout work.",
                 (("slides", ">", 16),)),
        ),
        good_message="Carousel slide count looks reasonable.",
    ),
    Rule(
        key="testimonials",
        label="Testimonials (.w-testimonials)",
        display=lambda m: f"{m['blocks']} blocks / {m['items']} items",
        tiers=(
            Tier("warn", -10, "Consider limiting testimonial items and lazy-loading offscreen content.",
                 (("blocks", ">=", 3), ("items", ">", 18))),
        ),
        good_message="Testimonials look fine at a glance.",
    ),
    Rule(
        key="libraries",
        label="Library components",
        display=lambda m: f"{m['containers']} containers / {m['types']} types",
        tiers=(
            Tier("bad", -10, "Multiple library modules can increase DOM and resource load depending on implementation.",
                 (("types", ">=", 4),)),
            Tier("warn", -10, "Multiple library modules can increase DOM and resource load depending on implementation.",
                 (("containers", ">", 1), ("types", ">=", 3))),
        ),
        good_message="Library usage looks reasonable.",
    ),
    Rule(
        key="images",
        label="Images (<img>)",
        display=_metric("images"),
        tiers=(
            Tier("bad", -12, "High image counts can hurt LCP and increase network cost. "
                             "Ensure compression, sizing, and lazy-loading.",
                 (("images", ">", 60),)),
            Tier("warn", -7, "Consider reducing image count, using responsive images, and lazy-loading below the fold.",
                 (("images", ">", 40),)),
        ),
        good_message="Image count looks fine.",
    ),
    Rule(
        key="videos",
        label="Videos (<video>)",
        display=_metric("videos"),
        tiers=(
            Tier("bad", -10, "Multiple videos can be heavy. Use poster images, defer loading, and avoid autoplay.",
                 (("videos", ">=", 5),)),
            Tier("warn", -10, "Multiple videos can be heavy. Use poster images, defer loading, and avoid autoplay.",
                 (("videos", ">=", 3),)),
        ),
        good_message="Video usage looks reasonable.",
    ),
    Rule(
        key="iframes",
        label="Iframes (<iframe>)",
        display=_metric("iframes"),
        tiers=(
            Tier("bad", -15, "Iframes often add third-party JS and can slow down rendering. "
                             "Defer, lazy-load, and minimise.",
                 (("iframes", ">=", 4),)),
            Tier("warn", -8, "Consider lazy-loading iframes and reviewing third-party impact.",
                 (("iframes", ">=", 2),)),
        ),
        good_message="Iframe usage looks fine.",
    ),
    Rule(
        key="adSpace",
        label="Ad slots (skyscrapers)",
        display=_metric("adSlots"),
        tiers=(
            Tier("bad", -15, "Lots of ad slots usually means more scripts and requests. "
                             "Consider reducing or deferring below-the-fold slots.",
                 (("adSlots", ">=", 5),)),
            Tier("warn", -8, "Moderate ad density. Ensure ads are lazy-loaded and do not block rendering.",
                 (("adSlots", ">=", 3),)),
        ),
        good_message="Ad slot usage looks controlled.",
    ),
)


RECOMMENDATIONS: Dict[str, Tuple[str, str]] = {
    "sections": (
        "Reduce overall page complexity",
        "Combine or remove low-value sections, especially below the fold. "
        "Consider collapsing repeated blocks into tabs/accordions.",
    ),
    "carousels": (
        "Keep carousels lean",
        "Limit to 1 carousel per page where possible. Reduce slide count, lazy-load images, "
        "and avoid heavy slides above the fold.",
    ),
    "carouselSlides": (
        "Keep carousels lean",
        "Limit to 1 carousel per page where possible. Reduce slide count, lazy-load images, "
        "and avoid heavy slides above the fold.",
    ),
    "testimonials": (
        "Trim testimonial payload",
        "Reduce the number of testimonial items shown initially. Defer additional items or paginate.",
    ),
    "libraries": (
        "Review library modules",
        "Avoid rendering multiple library lists at once. Consider loading library content on-demand.",
    ),
    "images": (
        "Optimise images",
        "Use responsive images (srcset/sizes), modern formats, compression, and lazy-loading. "
        "Ensure LCP image is prioritised.",
    ),
    "videos": (
        "Defer and optimise videos",
        "Use poster images, avoid autoplay, and defer loading until interaction or near viewport.",
    ),
    "iframes": (
        "Minimise third-party embeds",
        "Lazy-load iframes, remove non-essential embeds, and audit third-party scripts for impact.",
    ),
    "adSpace": (
        "Reduce ad density",
        "Limit the number of ad slots on a single page. Ensure ads do not block rendering "
        "and are lazy-loaded below the fold.",
    ),
}


def apply_overrides(rules: Tuple[Rule, ...], overrides: Optional[Dict[str, Dict[str, Any]]]) -> Tuple[Rule, ...]:
    """
    Swap thresholds without touching points or messages.

    `overrides` looks like {"sections": {"warn": 20, "bad": 30}}; a tier
    value may also be {metric: threshold} for rules with several metrics,
    e.g. {"testimonials": {"warn": {"items": 24}}}. Unknown dimensions and
    severities raise ValueError.
    """
    if not overrides:
        return rules
    by_key = {r.key: r for r in rules}
    unknown = set(overrides) - set(by_key)
    if unknown:
        raise ValueError(f"Unknown scoring dimensions: {sorted(unknown)}")

    out = []
    for rule in rules:
        changes = overrides.get(rule.key)
        if not changes:
            out.append(rule)
            continue
        severities = {t.severity for t in rule.tiers}
        if set(changes) - severities:
            raise ValueError(f"{rule.key}: no tier named {sorted(set(changes) - severities)}")
        tiers = []
        for tier in rule.tiers:
            new = changes.get(tier.severity)
            if new is None:
                tiers.append(tier)
                continue
            conditions = []
            for metric, op, threshold in tier.any_of:
                if isinstance(new, dict):
                    threshold = int(new.get(metric, threshold))
                else:
                    threshold = int(new)
                conditions.append((metric, op, threshold))
            tiers.append(replace(tier, any_of=tuple(conditions)))
        out.append(replace(rule, tiers=tuple(tiers)))
    return tuple(out)


def severity_from_score(score: int) -> str:
    if score >= 85:
        return "good"
    if score >= 65:
        return "warn"
    return "bad"


def label_from_score(score: int) -> str:
    if score >= 85:
        return "Good"
    if score >= 65:
        return "Needs attention"
    return "Heavy"


def clamp(n: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, n))


def recommend(finding: Finding) -> Recommendation:
    title, action = RECOMMENDATIONS.get(finding.key, (finding.label, finding.message))
    return Recommendation(key=finding.key, title=title, action=action)


def score_counts(counts: CensusCounts, rules: Tuple[Rule, ...] = DEFAULT_RULES) -> ScoreResult:
    metrics = census_metrics(counts)
    findings = [rule.evaluate(metrics) for rule in rules]

    score = clamp(START_SCORE + sum(f.points for f in findings), 0, 100)
    overall = Overall(score=score, severity=severity_from_score(score), label=label_from_score(score))

    # sorted() is stable, so ties keep rule order
    flagged = sorted((f for f in findings if f.severity != "good"), key=lambda f: f.points)
    return ScoreResult(
        overall=overall,
        findings=findings,
        recommendations=[recommend(f) for f in flagged],
    )
