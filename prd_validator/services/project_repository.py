"""
Storage access for projects, collaborators and stored PRDs.

Routers depend on the abstract ``ProjectRepository``; the SQLAlchemy
implementation is bound to the request's AsyncSession, so its lifetime is
the request's unit of work.

Usage
-----
    repo: ProjectRepository = Depends(get_project_repository)
    project = await repo.create(owner_id, name="Checkout revamp")
"""
from __future__ import annotations

import abc
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from prd_validator.models.database_models import (
    MemberRole,
    PrdDocument,
    Project,
    ProjectMember,
    ProjectStatus,
    ProjectVisibility,
)

logger = logging.getLogger(__name__)


class ProjectRepository(abc.ABC):
    """Create/find/update/delete operations used by the project endpoints."""

    @abc.abstractmethod
    async def create(
        self,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        status: ProjectStatus = ProjectStatus.DRAFT,
        visibility: ProjectVisibility = ProjectVisibility.PRIVATE,
        tags: Optional[List[str]] = None,
    ) -> Project: ...

    @abc.abstractmethod
    async def get(self, project_id: int) -> Optional[Project]: ...

    @abc.abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        status: Optional[ProjectStatus] = None,
        search: Optional[str] = None,
    ) -> List[Project]: ...

    @abc.abstractmethod
    async def update(self, project: Project, changes: Dict[str, Any]) -> Project: ...

    @abc.abstractmethod
    async def delete(self, project: Project) -> None: ...

    @abc.abstractmethod
    async def list_members(self, project_ids: Sequence[int]) -> Dict[int, List[ProjectMember]]: ...

    @abc.abstractmethod
    async def add_member(
        self, project: Project, user_id: str, role: MemberRole, added_by: str
    ) -> ProjectMember: ...

    @abc.abstractmethod
    async def remove_member(self, project: Project, user_id: str) -> bool: ...

    @abc.abstractmethod
    async def add_document(self, project: Project, **fields: Any) -> PrdDocument: ...

    @abc.abstractmethod
    async def list_documents(self, project_id: int) -> List[PrdDocument]: ...

    @abc.abstractmethod
    async def get_document(self, project_id: int, document_id: int) -> Optional[PrdDocument]: ...

    @abc.abstractmethod
    async def count_documents(self, project_ids: Sequence[int]) -> Dict[int, int]: ...


def can_read(project: Project, user_id: str, member_ids: Sequence[str]) -> bool:
    """Owner, team member, or anyone for a public project."""
    return (
        project.owner_id == user_id
        or user_id in member_ids
        or project.visibility == ProjectVisibility.PUBLIC
    )


def can_edit(project: Project, user_id: str, members: Sequence[ProjectMember]) -> bool:
    """Owner or an editor may add PRDs."""
    if project.owner_id == user_id:
        return True
    return any(m.user_id == user_id and m.role == MemberRole.EDITOR for m in members)


def can_manage(project: Project, user_id: str) -> bool:
    """Only the owner may update, delete or change membership."""
    return project.owner_id == user_id


class SqlAlchemyProjectRepository(ProjectRepository):
    """ProjectRepository backed by an AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
        status: ProjectStatus = ProjectStatus.DRAFT,
        visibility: ProjectVisibility = ProjectVisibility.PRIVATE,
        tags: Optional[List[str]] = None,
    ) -> Project:
        project = Project(
            name=name,
            description=description,
            status=status,
            visibility=visibility,
            tags=tags or [],
            owner_id=owner_id,
        )
        self.session.add(project)
        await self.session.flush()
        await self.session.refresh(project)
        logger.info("Created project id=%d name=%r for user=%s", project.id, name, owner_id)
        return project

    async def get(self, project_id: int) -> Optional[Project]:
        result = await self.session.execute(select(Project).where(Project.id == project_id))
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: str,
        status: Optional[ProjectStatus] = None,
        search: Optional[str] = None,
    ) -> List[Project]:
        """Projects the user owns, collaborates on, or that are public; most recently updated first."""
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        query = select(Project).where(
            or_(
                Project.owner_id == user_id,
                Project.id.in_(member_of),
                Project.visibility == ProjectVisibility.PUBLIC,
            )
        )
        if status is not None:
            query = query.where(Project.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Project.name.ilike(pattern), Project.description.ilike(pattern))
            )
        result = await self.session.execute(
            query.order_by(Project.updated_at.desc(), Project.id.desc())
        )
        return list(result.scalars().all())

    async def update(self, project: Project, changes: Dict[str, Any]) -> Project:
        for key, value in changes.items():
            setattr(project, key, value)
        await self.session.flush()
        await self.session.refresh(project)
        return project

    async def delete(self, project: Project) -> None:
        await self.session.delete(project)
        await self.session.flush()
        logger.info("Deleted project id=%d", project.id)

    async def list_members(self, project_ids: Sequence[int]) -> Dict[int, List[ProjectMember]]:
        members: Dict[int, List[ProjectMember]] = {pid: [] for pid in project_ids}
        if not project_ids:
            return members
        result = await self.session.execute(
            select(ProjectMember)
            .where(ProjectMember.project_id.in_(project_ids))
            .order_by(ProjectMember.id)
        )
        for member in result.scalars().all():
            members[member.project_id].append(member)
        return members

    async def add_member(
        self, project: Project, user_id: str, role: MemberRole, added_by: str
    ) -> ProjectMember:
        member = ProjectMember(
            project_id=project.id, user_id=user_id, role=role, added_by=added_by
        )
        self.session.add(member)
        await self.session.flush()
        await self.session.refresh(member)
        await self._touch(project)
        return member

    async def remove_member(self, project: Project, user_id: str) -> bool:
        result = await self.session.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project.id,
                ProjectMember.user_id == user_id,
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            return False
        await self.session.delete(member)
        await self.session.flush()
        await self._touch(project)
        return True

    async def add_document(self, project: Project, **fields: Any) -> PrdDocument:
        document = PrdDocument(project_id=project.id, **fields)
        self.session.add(document)
        await self.session.flush()
        await self.session.refresh(document)
        await self._touch(project)
        return document

    async def list_documents(self, project_id: int) -> List[PrdDocument]:
        result = await self.session.execute(
            select(PrdDocument)
            .where(PrdDocument.project_id == project_id)
            .order_by(PrdDocument.created_at, PrdDocument.id)
        )
        return list(result.scalars().all())

    async def get_document(self, project_id: int, document_id: int) -> Optional[PrdDocument]:
        result = await self.session.execute(
            select(PrdDocument).where(
                PrdDocument.id == document_id,
                PrdDocument.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    async def count_documents(self, project_ids: Sequence[int]) -> Dict[int, int]:
        if not project_ids:
            return {}
        result = await self.session.execute(
            select(PrdDocument.project_id, func.count(PrdDocument.id).label("cnt"))
            .where(PrdDocument.project_id.in_(project_ids))
            .group_by(PrdDocument.project_id)
        )
        return {row.project_id: row.cnt for row in result}

    async def _touch(self, project: Project) -> None:
        """Bump updated_at so activity on members or PRDs counts as project activity."""
        project.updated_at = func.now()
        await self.session.flush()
        await self.session.refresh(project)
