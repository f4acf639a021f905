"""
Project management endpoints.

Route summary
-------------
POST   /api/projects                                    - create project
GET    /api/projects                                    - list own, shared and public projects
GET    /api/projects/{project_id}                       - project detail
PUT    /api/projects/{project_id}                       - update (owner only)
DELETE /api/projects/{project_id}                       - delete, cascades PRDs (owner only)

POST   /api/projects/{project_id}/collaborators         - add team member (owner only)
DELETE /api/projects/{project_id}/collaborators/{uid}   - remove team member (owner only)

POST   /api/projects/{project_id}/documents             - upload, analyse and store a PRD
GET    /api/projects/{project_id}/documents             - list stored PRDs
GET    /api/projects/{project_id}/documents/{doc_id}    - stored PRD with analysis

GET    /api/projects/{project_id}/analytics             - aggregates over stored PRDs
"""
import dataclasses
import logging
import math
from collections import Counter
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from prd_validator.dependencies.auth import (
    get_current_user_id,
    get_managed_project,
    get_or_create_user,
    get_project_repository,
    get_readable_project,
)
from prd_validator.models.database_models import (
    MemberRole,
    PrdDocument,
    Project,
    ProjectMember,
    ProjectStatus,
    ProjectVisibility,
    User,
)
from prd_validator.models.schemas import (
    CollaboratorAdd,
    MemberResponse,
    Pagination,
    PrdDocumentResponse,
    PrdDocumentSummary,
    ProjectAnalyticsResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectStatusSchema,
    ProjectUpdate,
    ScorePoint,
)
from prd_validator.routers.documents import parse_upload
from prd_validator.services.document_parser import detect_format
from prd_validator.services.prd_extractor import parse
from prd_validator.services.project_repository import ProjectRepository, can_edit
from prd_validator.services.scoring import quick_score
from prd_validator.services.structure_validator import validate_structure

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _member_response(member: ProjectMember) -> MemberResponse:
    return MemberResponse(
        user_id=member.user_id,
        role=member.role.value,
        added_by=member.added_by,
        added_at=member.added_at,
    )


def _project_response(
    project: Project, members: List[ProjectMember], prd_count: int
) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        description=project.description,
        status=project.status.value,
        visibility=project.visibility.value,
        tags=project.tags or [],
        owner_id=project.owner_id,
        members=[_member_response(m) for m in members],
        prd_count=prd_count,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


async def _describe(project: Project, repo: ProjectRepository) -> ProjectResponse:
    members = (await repo.list_members([project.id]))[project.id]
    counts = await repo.count_documents([project.id])
    return _project_response(project, members, counts.get(project.id, 0))


def _average(values: List[int]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECT CRUD
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_or_create_user),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectResponse:
    """Create a project owned by the authenticated user."""
    project = await repo.create(
        owner_id=user.id,
        name=body.name,
        description=body.description,
        status=ProjectStatus(body.status.value),
        visibility=ProjectVisibility(body.visibility.value),
        tags=body.tags,
    )
    return _project_response(project, [], 0)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    status_filter: Optional[ProjectStatusSchema] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectListResponse:
    """
    Projects the user can see, most recently updated first.

    Filter by ``status`` and by a ``search`` term matched against name and
    description; results are paginated with ``page`` / ``limit``.
    """
    projects = await repo.list_for_user(
        user_id,
        status=ProjectStatus(status_filter.value) if status_filter else None,
        search=search,
    )

    total = len(projects)
    start = (page - 1) * limit
    page_items = projects[start:start + limit]

    ids = [p.id for p in page_items]
    members = await repo.list_members(ids)
    counts = await repo.count_documents(ids)

    return ProjectListResponse(
        projects=[
            _project_response(p, members.get(p.id, []), counts.get(p.id, 0))
            for p in page_items
        ],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project: Project = Depends(get_readable_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectResponse:
    return await _describe(project, repo)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    body: ProjectUpdate,
    project: Project = Depends(get_managed_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectResponse:
    """Apply the supplied fields; omitted fields are left unchanged."""
    changes = body.model_dump(exclude_unset=True)
    if "status" in changes and changes["status"] is not None:
        changes["status"] = ProjectStatus(changes["status"].value)
    if "visibility" in changes and changes["visibility"] is not None:
        changes["visibility"] = ProjectVisibility(changes["visibility"].value)
    # name, status and visibility are NOT NULL
    changes = {
        k: v for k, v in changes.items()
        if v is not None or k in ("description", "tags")
    }

    project = await repo.update(project, changes)
    logger.info("Updated project id=%d fields=%s", project.id, sorted(changes))
    return await _describe(project, repo)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project: Project = Depends(get_managed_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> Response:
    """Delete a project together with its members and stored PRDs."""
    await repo.delete(project)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════════════════════════
# COLLABORATORS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post(
    "/{project_id}/collaborators",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_collaborator(
    body: CollaboratorAdd,
    project: Project = Depends(get_managed_project),
    user_id: str = Depends(get_current_user_id),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectResponse:
    """Add a user to the project team as viewer or editor."""
    if body.user_id == project.owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The project owner is already part of the team.",
        )

    members = (await repo.list_members([project.id]))[project.id]
    if any(m.user_id == body.user_id for m in members):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User {body.user_id} is already a collaborator.",
        )

    await repo.add_member(project, body.user_id, MemberRole(body.role.value), added_by=user_id)
    logger.info("Added collaborator %s to project id=%d", body.user_id, project.id)
    return await _describe(project, repo)


@router.delete(
    "/{project_id}/collaborators/{collaborator_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_collaborator(
    collaborator_id: str,
    project: Project = Depends(get_managed_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> Response:
    removed = await repo.remove_member(project, collaborator_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {collaborator_id} is not a collaborator on this project.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════════════════════════
# STORED PRDs
# ═══════════════════════════════════════════════════════════════════════════════

@router.post(
    "/{project_id}/documents",
    response_model=PrdDocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_project_document(
    file: UploadFile = File(...),
    project: Project = Depends(get_readable_project),
    user: User = Depends(get_or_create_user),
    repo: ProjectRepository = Depends(get_project_repository),
) -> PrdDocumentResponse:
    """
    Upload a PRD into a project.

    The document is parsed, structure-validated and quick-scored locally;
    the text and all results are stored with the project. Only the owner
    and editors may upload.
    """
    members = (await repo.list_members([project.id]))[project.id]
    if not can_edit(project, user.id, members):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner and editors can add PRDs.",
        )

    parsed = await parse_upload(file)
    structured = parse(parsed.text)
    validation = validate_structure(structured, parsed.text)
    score = quick_score(structured)

    document = await repo.add_document(
        project,
        filename=file.filename,
        file_type=detect_format(file.filename),
        content_text=parsed.text,
        metadata_json=parsed.metadata,
        structured_json=structured.to_dict(),
        validation_json=dataclasses.asdict(validation),
        structure_score=validation.overall_score,
        quick_score=score.overall_score,
        uploaded_by=user.id,
    )
    logger.info(
        "Stored PRD id=%d %r in project id=%d (structure=%d, quick=%d)",
        document.id, document.filename, project.id,
        validation.overall_score, score.overall_score,
    )
    return PrdDocumentResponse.model_validate(document)


@router.get("/{project_id}/documents", response_model=List[PrdDocumentSummary])
async def list_project_documents(
    project: Project = Depends(get_readable_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> List[PrdDocumentSummary]:
    documents = await repo.list_documents(project.id)
    return [PrdDocumentSummary.model_validate(d) for d in documents]


@router.get("/{project_id}/documents/{document_id}", response_model=PrdDocumentResponse)
async def get_project_document(
    document_id: int,
    project: Project = Depends(get_readable_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> PrdDocumentResponse:
    document = await repo.get_document(project.id, document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"PRD {document_id} not found in project {project.id}.",
        )
    return PrdDocumentResponse.model_validate(document)


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{project_id}/analytics", response_model=ProjectAnalyticsResponse)
async def project_analytics(
    project: Project = Depends(get_readable_project),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectAnalyticsResponse:
    """Averages, best PRD, file-type mix and score trend over the stored PRDs."""
    documents: List[PrdDocument] = await repo.list_documents(project.id)
    members = (await repo.list_members([project.id]))[project.id]

    structure_scores = [d.structure_score for d in documents if d.structure_score is not None]
    quick_scores = [d.quick_score for d in documents if d.quick_score is not None]

    scored = [d for d in documents if d.quick_score is not None]
    best = max(scored, key=lambda d: (d.quick_score, d.id)) if scored else None

    return ProjectAnalyticsResponse(
        project_id=project.id,
        total_prds=len(documents),
        average_structure_score=_average(structure_scores),
        average_quick_score=_average(quick_scores),
        best_prd=PrdDocumentSummary.model_validate(best) if best else None,
        file_types=dict(Counter(d.file_type for d in documents)),
        member_count=len(members),
        score_trend=[ScorePoint(date=d.created_at, score=d.quick_score) for d in scored],
    )
