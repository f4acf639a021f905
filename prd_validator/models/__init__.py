"""Database and schema models for the PRD Validator."""
from prd_validator.models.database_models import (
    User,
    Project,
    ProjectMember,
    PrdDocument,
    ProjectStatus,
    ProjectVisibility,
    MemberRole,
)
from prd_validator.models.schemas import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    PrdDocumentResponse,
    ParsedDocumentResponse,
    ValidationResponse,
    QuickScoreResponse,
    AnalyzeResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Project",
    "ProjectMember",
    "PrdDocument",
    "ProjectStatus",
    "ProjectVisibility",
    "MemberRole",
    # Pydantic schemas
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectResponse",
    "PrdDocumentResponse",
    "ParsedDocumentResponse",
    "ValidationResponse",
    "QuickScoreResponse",
    "AnalyzeResponse",
    "HealthCheckResponse",
]
