"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# Enums (matching database enums)
class ProjectStatusSchema(str, Enum):
    """Project lifecycle states for API requests/responses."""

    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ProjectVisibilitySchema(str, Enum):
    """Project visibility levels."""

    PRIVATE = "private"
    TEAM = "team"
    PUBLIC = "public"


class MemberRoleSchema(str, Enum):
    """Collaborator roles."""

    VIEWER = "viewer"
    EDITOR = "editor"


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------

class StructuredDataSchema(BaseModel):
    """Sections and candidate lists extracted from a PRD."""

    sections: Dict[str, str] = {}
    metrics: List[str] = []
    stakeholders: List[str] = []
    features: List[str] = []
    risks: List[str] = []
    timeline: Optional[Any] = None


class PrdDataSchema(StructuredDataSchema):
    """
    Structured PRD data submitted for validation, scoring or analysis.

    Section bodies and list entries must be strings. Extra top-level keys
    (title, notes, ...) are kept and passed through.
    """

    model_config = ConfigDict(extra="allow")

    def as_dict(self) -> Dict[str, Any]:
        """The submitted fields only, as a plain mapping."""
        return self.model_dump(exclude_unset=True)


class ParseTextRequest(BaseModel):
    """Raw PRD text submitted for extraction."""

    content: str = Field(..., min_length=1)
    title: Optional[str] = None


class ParsedDocumentResponse(BaseModel):
    """Text, metadata and structured data for one parsed PRD."""

    title: str
    content: str
    metadata: Dict[str, Any] = {}
    structured_data: StructuredDataSchema


class SupportedFormatsResponse(BaseModel):
    formats: List[str]
    max_file_size_mb: int


# ---------------------------------------------------------------------------
# Structure validation
# ---------------------------------------------------------------------------

class ValidateStructureRequest(BaseModel):
    """At least one of the two fields must be supplied."""

    structured_data: Optional[PrdDataSchema] = None
    content: Optional[str] = None


class SectionAnalysisSchema(BaseModel):
    present: bool
    score: int
    completeness: int


class ValidationResponse(BaseModel):
    """Section presence scoring for a PRD."""

    overall_score: int
    completeness_score: int
    section_analysis: Dict[str, SectionAnalysisSchema]
    missing_sections: List[str]
    strengths: List[str]
    areas_for_improvement: List[str]
    recommendations: List[str]

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Scoring / AI analysis
# ---------------------------------------------------------------------------

class QuickScoreRequest(BaseModel):
    prd_data: PrdDataSchema


class QuickScoreResponse(BaseModel):
    """Local heuristic score; breakdown is a 40/30/30 split of overall_score."""

    overall_score: int
    breakdown: Dict[str, int]
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class AnalyzeRequest(BaseModel):
    """Request for an AI analysis of structured PRD data."""

    prd_data: PrdDataSchema
    analysis_type: str = "comprehensive"
    include_executive_summary: bool = False


class AnalyzeResponse(BaseModel):
    """
    AI analysis result.

    ``scores`` holds the dimensions that produced a score; dimensions listed in
    ``failed_dimensions`` are excluded from ``overall_score``.
    """

    analysis_type: str
    overall_score: int
    scores: Dict[str, float]
    failed_dimensions: Dict[str, str]
    results: Dict[str, Any]
    recommendations: Optional[Dict[str, Any]] = None
    executive_summary: Optional[str] = None
    timestamp: datetime


class PrdVersion(BaseModel):
    name: Optional[str] = None
    data: PrdDataSchema


class CompareRequest(BaseModel):
    prd_versions: List[PrdVersion] = Field(..., min_length=2)
    comparison_type: str = "side-by-side"


class VersionComparison(BaseModel):
    version: str
    overall_score: int
    scores: Dict[str, float]
    failed_dimensions: Dict[str, str]


class CompareResponse(BaseModel):
    comparisons: List[VersionComparison]
    insights: Dict[str, Any]
    comparison_type: str
    timestamp: datetime


class ExportRequest(BaseModel):
    validation_results: Dict[str, Any]
    format: str = "json"
    include_raw_data: bool = False


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class ProjectCreate(BaseModel):
    """Schema for creating a new project."""

    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    status: ProjectStatusSchema = ProjectStatusSchema.DRAFT
    visibility: ProjectVisibilitySchema = ProjectVisibilitySchema.PRIVATE
    tags: List[str] = []


class ProjectUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None
    status: Optional[ProjectStatusSchema] = None
    visibility: Optional[ProjectVisibilitySchema] = None
    tags: Optional[List[str]] = None


class CollaboratorAdd(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    role: MemberRoleSchema = MemberRoleSchema.VIEWER


class MemberResponse(BaseModel):
    user_id: str
    role: MemberRoleSchema
    added_by: str
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(BaseModel):
    """Schema for project responses."""

    id: int
    name: str
    description: Optional[str] = None
    status: ProjectStatusSchema
    visibility: ProjectVisibilitySchema
    tags: List[str] = []
    owner_id: str
    members: List[MemberResponse] = []
    prd_count: int = 0
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ProjectListResponse(BaseModel):
    projects: List[ProjectResponse]
    pagination: Pagination


class PrdDocumentSummary(BaseModel):
    """Stored PRD without its full text."""

    id: int
    project_id: int
    filename: str
    file_type: str
    structure_score: Optional[int] = None
    quick_score: Optional[int] = None
    uploaded_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PrdDocumentResponse(PrdDocumentSummary):
    """Stored PRD with extraction and validation payloads."""

    metadata_json: Optional[Dict[str, Any]] = None
    structured_json: Optional[Dict[str, Any]] = None
    validation_json: Optional[Dict[str, Any]] = None


class ScorePoint(BaseModel):
    date: datetime
    score: int


class ProjectAnalyticsResponse(BaseModel):
    """Aggregates over the PRDs stored in a project."""

    project_id: int
    total_prds: int
    average_structure_score: Optional[float] = None
    average_quick_score: Optional[float] = None
    best_prd: Optional[PrdDocumentSummary] = None
    file_types: Dict[str, int] = {}
    member_count: int = 0
    score_trend: List[ScorePoint] = []


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    ollama: str
    timestamp: datetime
