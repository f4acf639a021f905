"""
Identity and access dependencies for FastAPI routes.

Extracts user identity from the X-User-Id header (set by the frontend or an
upstream gateway) and resolves project access through the ProjectRepository.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prd_validator.database import get_db
from prd_validator.models.database_models import Project, User
from prd_validator.services.project_repository import (
    ProjectRepository,
    SqlAlchemyProjectRepository,
    can_manage,
    can_read,
)

logger = logging.getLogger(__name__)


def get_project_repository(db: AsyncSession = Depends(get_db)) -> ProjectRepository:
    """Repository bound to the request's database session."""
    return SqlAlchemyProjectRepository(db)


async def get_current_user_id(
    x_user_id: str = Header(..., alias="X-User-Id"),
) -> str:
    """Extract the authenticated user ID from the request header. Raises 401 if empty."""
    if not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id


async def get_or_create_user(
    user_id: str = Depends(get_current_user_id),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Ensure the user exists in the local users table. Creates if needed."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(
            id=user_id,
            email=x_user_email or f"{user_id}@prd-validator.local",
            name=x_user_name,
        )
        db.add(user)
        await db.flush()
        logger.info("Created new user: id=%s email=%s", user_id, user.email)

    return user


async def get_readable_project(
    project_id: int,
    user_id: str = Depends(get_current_user_id),
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    """
    Load a project the current user may read (owner, member, or public).
    Raises 404 when it does not exist and 403 when access is denied.
    """
    project = await repo.get(project_id)
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project {project_id} not found.",
        )

    members = (await repo.list_members([project.id]))[project.id]
    if not can_read(project, user_id, [m.user_id for m in members]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied.",
        )
    return project


async def get_managed_project(
    project: Project = Depends(get_readable_project),
    user_id: str = Depends(get_current_user_id),
) -> Project:
    """Like get_readable_project, but only the owner passes."""
    if not can_manage(project, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied.",
        )
    return project
