from typing import Optional, Dict, Any, List, Union, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, computed_field, field_validator
from pydantic.alias_generators import to_camel

from healthcheck.core.errors import TargetURLError

Severity = Literal["good", "warn", "bad"]

MAX_SECTION_IMAGE_URLS = 60


class CamelModel(BaseModel):
    # wire format is camelCase, python side is snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- target ----------
class AuditTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str

    @classmethod
    def parse(cls, raw: Optional[str], default: Optional[str] = None) -> "AuditTarget":
        candidate = (raw or "").strip() or (default or "").strip()
        if not candidate:
            raise TargetURLError("Missing url")
        try:
            parts = urlsplit(candidate)
            parts.port  # raises on a non-numeric or out-of-range port
        except ValueError:
            raise TargetURLError("Invalid url")
        if parts.scheme.lower() not in ("http", "https"):
            if not parts.scheme or not parts.netloc:
                raise TargetURLError("Invalid url")
            raise TargetURLError("URL must be http/https")
        if not parts.netloc or not parts.hostname:
            raise TargetURLError("Invalid url")
        return cls(url=candidate)


# ---------- census counts ----------
class CarouselCounts(CamelModel):
    count: NonNegativeInt = 0
    slides_per_carousel: List[NonNegativeInt] = []
    type: Optional[str] = None

    @computed_field(alias="slidesTotal")
    @property
    def slides_total(self) -> int:
        return sum(self.slides_per_carousel)


class TestimonialCounts(CamelModel):
    __test__ = False  # keep pytest from collecting it

    count: NonNegativeInt = 0
    items_per_block: List[NonNegativeInt] = []

    @computed_field(alias="itemsTotal")
    @property
    def items_total(self) -> int:
        return sum(self.items_per_block)


class LibraryTypes(CamelModel):
    news: NonNegativeInt = 0
    products: NonNegativeInt = 0
    video: NonNegativeInt = 0
    sponsor: NonNegativeInt = 0


class LibraryCounts(CamelModel):
    containers: NonNegativeInt = 0
    types: LibraryTypes = LibraryTypes()

    @computed_field(alias="typesTotal")
    @property
    def types_total(self) -> int:
        t = self.types
        return t.news + t.products + t.video + t.sponsor


class MediaCounts(CamelModel):
    images: NonNegativeInt = 0
    videos: NonNegativeInt = 0
    iframes: NonNegativeInt = 0


class AdSpaceCounts(CamelModel):
    skyscraper_left: NonNegativeInt = 0
    skyscraper_right: NonNegativeInt = 0
    skyscraper_top: NonNegativeInt = 0
    skyscraper_bottom: NonNegativeInt = 0

    @computed_field(alias="total")
    @property
    def total(self) -> int:
        return self.skyscraper_left + self.skyscraper_right + self.skyscraper_top + self.skyscraper_bottom


class TopImage(CamelModel):
    url: str
    name: str
    bytes: NonNegativeInt
    kb: float
    mb: float


class SectionBreakdown(CamelModel):
    index: NonNegativeInt
    id: Optional[str] = None
    class_name: Optional[str] = None
    images: NonNegativeInt = 0
    videos: NonNegativeInt = 0
    iframes: NonNegativeInt = 0
    carousels: CarouselCounts = CarouselCounts()
    image_urls: List[str] = []
    top_images: List[TopImage] = []

    @field_validator("image_urls")
    @classmethod
    def _cap_image_urls(cls, v: List[str]) -> List[str]:
        seen = []
        for u in v:
            if u and u not in seen:
                seen.append(u)
        return seen[:MAX_SECTION_IMAGE_URLS]


class SectionsBreakdown(CamelModel):
    total: NonNegativeInt = 0
    breakdown: List[SectionBreakdown] = []


class CensusCounts(CamelModel):
    sections: Union[NonNegativeInt, SectionsBreakdown] = 0
    carousels: CarouselCounts = CarouselCounts()
    testimonials: TestimonialCounts = TestimonialCounts()
    libraries: LibraryCounts = LibraryCounts()
    media: MediaCounts = MediaCounts()
    ad_space: AdSpaceCounts = AdSpaceCounts()

    @property
    def section_total(self) -> int:
        if isinstance(self.sections, SectionsBreakdown):
            return self.sections.total
        return self.sections


# ---------- scoring ----------
class Finding(CamelModel):
    key: str
    label: str
    value: Union[int, str]
    severity: Severity
    points: int = Field(le=0)
    message: str
    threshold: Dict[str, Any] = {}


class Overall(CamelModel):
    score: int = Field(ge=0, le=100)
    severity: Severity
    label: str


class Recommendation(CamelModel):
    key: str
    title: str
    action: str


class ScoreResult(CamelModel):
    overall: Overall
    findings: List[Finding]
    recommendations: List[Recommendation]


class AspResponse(CamelModel):
    target_url: str
    final_url: Optional[str] = None
    counts: CensusCounts
    asp: ScoreResult
    mode: Literal["rendered-dom", "static"]


# ---------- page-speed ----------
class CategoryScores(CamelModel):
    performance: Optional[int] = None
    accessibility: Optional[int] = None
    best_practices: Optional[int] = None
    seo: Optional[int] = None


class LabMetrics(CamelModel):
    fcp_ms: Optional[float] = None
    lcp_ms: Optional[float] = None
    cls: Optional[float] = None
    tbt_ms: Optional[float] = None
    si_ms: Optional[float] = None
    ttfb_ms: Optional[float] = None


class FieldMetric(CamelModel):
    percentile: Optional[float] = None
    distributions: Optional[List[Dict[str, Any]]] = None
    category: Optional[str] = None


class FieldData(CamelModel):
    id: Optional[str] = None
    lcp: Optional[FieldMetric] = None
    inp: Optional[FieldMetric] = None
    cls: Optional[FieldMetric] = None
    fcp: Optional[FieldMetric] = None
    ttfb: Optional[FieldMetric] = None


class Opportunity(CamelModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    savings_ms: Optional[float] = None


class Diagnostics(CamelModel):
    total_byte_weight: Optional[float] = None
    dom_size: Optional[Dict[str, Any]] = None
    third_party_summary: Optional[Dict[str, Any]] = None
    resource_summary: Optional[Dict[str, Any]] = None
    network_requests: Optional[Dict[str, Any]] = None
    mainthread_work: Optional[Dict[str, Any]] = None
    bootup_time: Optional[Dict[str, Any]] = None


class PageSpeedAudit(CamelModel):
    target_url: str
    requested_url: Optional[str] = None
    final_url: Optional[str] = None
    fetch_time: Optional[str] = None
    strategy: Optional[str] = None
    scores: CategoryScores = CategoryScores()
    metrics: LabMetrics = LabMetrics()
    field_data: Optional[FieldData] = None
    opportunities: List[Opportunity] = []
    diagnostics: Optional[Diagnostics] = None


# ---------- narrative ----------
class PageMetadata(CamelModel):
    url: Optional[str] = None
    title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    canonical: Optional[str] = None
    lang: Optional[str] = None
    h1: List[str] = []
    h2: List[str] = []
    content_sample: Optional[str] = None


class AuditSummaryInput(CamelModel):
    """What the client posts back as `audit`; anything else it sends is ignored."""

    target_url: Optional[str] = None
    final_url: Optional[str] = None
    fetch_time: Optional[str] = None
    scores: Optional[CategoryScores] = None
    metrics: Optional[LabMetrics] = None
    opportunities: List[Opportunity] = []
    asp: Optional[ScoreResult] = None


class RecommendationsRequest(CamelModel):
    api_key: Optional[str] = None
    audit: Optional[Dict[str, Any]] = None


class RecommendationsResponse(CamelModel):
    recommendations: str
    extracted: Optional[PageMetadata] = None
    suggested_keywords: List[str] = []


# ---------- orchestration ----------
class PartResult(CamelModel):
    ok: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    status: Optional[int] = None


class FullAuditResponse(CamelModel):
    target_url: str
    pagespeed: PartResult
    asp: PartResult
