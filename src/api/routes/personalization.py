"""Personalization endpoints for the ShopRec API.

These mirror the interface the storefront UI uses: settings, profile
snapshots, scored recommendations, assembled sections, and the
impression/click/feedback loop.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field, field_validator, model_validator

from src.api.exceptions import (
    CatalogNotLoadedError,
    InvalidSettingsError,
    ProductNotFoundError,
    UnknownMetricKindError,
)
from src.api.metrics import PerformanceTracker
from src.personalization.exceptions import SettingsValidationError
from src.personalization.models import (
    MetricKind,
    PersonalizationMetrics,
    PersonalizationProfile,
    PersonalizationSettings,
    RecommendationResult,
    SearchEvent,
    Section,
)
from src.personalization.service import PersonalizationService

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(
    prefix="/personalization",
    tags=["personalization"],
)


def get_service(request: Request) -> PersonalizationService:
    return request.app.state.service


def get_performance(request: Request) -> PerformanceTracker:
    return request.app.state.performance


class ViewRequest(BaseModel):
    """Body for recording a product or category page view."""

    product_id: Optional[int] = Field(default=None, description="Viewed product")
    category: Optional[str] = Field(default=None, description="Viewed category page")
    path: Optional[str] = Field(default=None, description="Page path")

    @model_validator(mode="after")
    def _requires_target(self) -> "ViewRequest":
        if self.product_id is None and not self.category:
            raise ValueError("Either product_id or category is required")
        return self


class SearchRequest(BaseModel):
    """Body for recording a storefront search."""

    term: str = Field(..., min_length=1, max_length=200, description="Search term")
    path: Optional[str] = Field(default=None, description="Search results page path")

    @field_validator("term")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("term must not be blank")
        return value.strip()


class MetricRequest(BaseModel):
    section_id: Optional[str] = Field(default=None, description="Section shown or clicked")
    product_id: Optional[int] = Field(default=None, description="Product shown or clicked")


class FeedbackRequest(BaseModel):
    section_id: str = Field(..., description="Section the product was shown in")
    product_id: Optional[int] = Field(default=None, description="Product rated")
    positive: bool = Field(..., description="True for thumbs-up, False for thumbs-down")


class RecommendationRequest(BaseModel):
    """Body for scoring a candidate list.

    Attributes:
        candidate_ids: Catalog ids to score; the whole catalog if omitted.
        count: Maximum number of results.
        exclude_ids: Product ids to leave out.
    """

    candidate_ids: Optional[List[int]] = Field(default=None)
    count: int = Field(default=8, ge=0, le=100)
    exclude_ids: List[int] = Field(default_factory=list)


class RecommendationResponse(BaseModel):
    recommendations: List[RecommendationResult]
    threshold: float = Field(..., description="Score above which results count as personalized")


class SectionsResponse(BaseModel):
    welcome_message: str
    sections: List[Section]


class StatusResponse(BaseModel):
    status: str


@router.get("/settings", response_model=PersonalizationSettings)
def read_settings(service: PersonalizationService = Depends(get_service)) -> PersonalizationSettings:
    return service.get_personalization_settings()


@router.patch("/settings", response_model=PersonalizationSettings)
def update_settings(
    partial: Dict[str, Any],
    service: PersonalizationService = Depends(get_service),
) -> PersonalizationSettings:
    """Apply a partial settings update and persist it immediately."""
    try:
        return service.update_personalization_settings(partial)
    except SettingsValidationError as e:
        raise InvalidSettingsError(e.errors) from e


@router.post("/settings/reset", response_model=PersonalizationSettings)
def reset_settings(service: PersonalizationService = Depends(get_service)) -> PersonalizationSettings:
    return service.reset_personalization_settings()


@router.get("/profile", response_model=PersonalizationProfile)
def read_profile(service: PersonalizationService = Depends(get_service)) -> PersonalizationProfile:
    return service.get_personalization_profile()


@router.post("/events/view", response_model=StatusResponse, status_code=status.HTTP_202_ACCEPTED)
def record_view(
    body: ViewRequest,
    service: PersonalizationService = Depends(get_service),
) -> StatusResponse:
    """Record a page view. Persistence failures are reported, not raised."""
    if body.product_id is not None:
        recorded = service.track_product_view(body.product_id, path=body.path)
    else:
        recorded = service.track_category_view(body.category, path=body.path)
    return StatusResponse(status="recorded" if recorded else "dropped")


@router.post("/events/search", response_model=StatusResponse, status_code=status.HTTP_202_ACCEPTED)
def record_search(
    body: SearchRequest,
    service: PersonalizationService = Depends(get_service),
) -> StatusResponse:
    recorded = service.track_search(body.term, path=body.path)
    return StatusResponse(status="recorded" if recorded else "dropped")


@router.get("/searches", response_model=List[SearchEvent])
def read_search_history(
    limit: int = Query(default=20, ge=0, le=100),
    service: PersonalizationService = Depends(get_service),
) -> List[SearchEvent]:
    """Distinct recent searches, most recent first."""
    return service.get_search_history(limit)


@router.post("/metrics/{kind}", response_model=StatusResponse, status_code=status.HTTP_202_ACCEPTED)
def record_metric(
    kind: str,
    body: Optional[MetricRequest] = None,
    service: PersonalizationService = Depends(get_service),
) -> StatusResponse:
    """Record an impression or a click; duplicates are counted."""
    try:
        metric_kind = MetricKind(kind)
    except ValueError as e:
        raise UnknownMetricKindError(kind) from e

    body = body or MetricRequest()
    service.update_personalization_metrics(
        metric_kind,
        section_id=body.section_id,
        product_id=body.product_id,
    )
    return StatusResponse(status="recorded")


@router.get("/metrics", response_model=PersonalizationMetrics)
def read_metrics(service: PersonalizationService = Depends(get_service)) -> PersonalizationMetrics:
    return service.get_metrics()


@router.post("/feedback", response_model=StatusResponse, status_code=status.HTTP_202_ACCEPTED)
def record_feedback(
    body: FeedbackRequest,
    service: PersonalizationService = Depends(get_service),
) -> StatusResponse:
    service.record_feedback(body.section_id, body.product_id, body.positive)
    return StatusResponse(status="recorded")


@router.post("/recommendations", response_model=RecommendationResponse)
def recommendations(
    body: RecommendationRequest,
    service: PersonalizationService = Depends(get_service),
    performance: PerformanceTracker = Depends(get_performance),
) -> RecommendationResponse:
    """Score catalog candidates against the current profile.

    Raises:
        CatalogNotLoadedError: If the catalog is empty.
        ProductNotFoundError: If a candidate id is not in the catalog.
    """
    if not service.catalog:
        raise CatalogNotLoadedError()

    candidates = None
    if body.candidate_ids is not None:
        by_id = {p.id: p for p in service.catalog}
        missing = [pid for pid in body.candidate_ids if pid not in by_id]
        if missing:
            raise ProductNotFoundError(missing)
        candidates = [by_id[pid] for pid in body.candidate_ids]

    start_time = time.time()
    results = service.get_personalized_recommendations(
        candidates=candidates,
        count=body.count,
        exclude_ids=body.exclude_ids,
    )
    performance.record("recommendations", (time.time() - start_time) * 1000)

    return RecommendationResponse(
        recommendations=results,
        threshold=service.get_personalization_settings().min_relevance_score,
    )


@router.get("/sections", response_model=SectionsResponse)
def sections(
    first_name: Optional[str] = None,
    service: PersonalizationService = Depends(get_service),
    performance: PerformanceTracker = Depends(get_performance),
) -> SectionsResponse:
    """Assemble the home page sections for the current shopper."""
    if not service.catalog:
        raise CatalogNotLoadedError()

    start_time = time.time()
    assembled = service.get_sections()
    performance.record("sections", (time.time() - start_time) * 1000)

    return SectionsResponse(
        welcome_message=service.get_welcome_message(first_name),
        sections=assembled,
    )


@router.get("/performance")
def read_performance(
    performance: PerformanceTracker = Depends(get_performance),
) -> Dict[str, Dict[str, float]]:
    return performance.get_metrics()


@router.delete("/data", response_model=StatusResponse)
def clear_data(service: PersonalizationService = Depends(get_service)) -> StatusResponse:
    """Forget the shopper's behavioral data (logout or privacy reset)."""
    cleared = service.clear_personalization_data()
    return StatusResponse(status="cleared" if cleared else "failed")
