"""
SQLAlchemy ORM models for the PRD Validator database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from prd_validator.database import Base


# Enums
class ProjectStatus(str, enum.Enum):
    """Lifecycle state of a project."""

    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ProjectVisibility(str, enum.Enum):
    """Who besides the owner and team members can read a project."""

    PRIVATE = "private"
    TEAM = "team"
    PUBLIC = "public"


class MemberRole(str, enum.Enum):
    """Role of a collaborator within a project."""

    VIEWER = "viewer"
    EDITOR = "editor"


# Models
class User(Base):
    """User account, created on first request carrying an X-User-Id header."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    projects = relationship("Project", back_populates="owner", cascade="all, delete-orphan")


class Project(Base):
    """A product initiative grouping the PRDs written for it."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(ProjectStatus), default=ProjectStatus.DRAFT, nullable=False)
    visibility = Column(
        SQLEnum(ProjectVisibility), default=ProjectVisibility.PRIVATE, nullable=False
    )
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    owner_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    owner = relationship("User", back_populates="projects")
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    documents = relationship("PrdDocument", back_populates="project", cascade="all, delete-orphan")


class ProjectMember(Base):
    """A collaborator added to a project by its owner."""

    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    role = Column(SQLEnum(MemberRole), default=MemberRole.VIEWER, nullable=False)
    added_by = Column(String(255), nullable=False)
    added_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="members")


class PrdDocument(Base):
    """An uploaded PRD with its extracted structure and local scores."""

    __tablename__ = "prd_documents"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_type = Column(String(50), nullable=False)  # pdf, docx, txt
    content_text = Column(Text, nullable=True)
    metadata_json = Column(JSON, nullable=True)
    structured_json = Column(JSON, nullable=True)
    validation_json = Column(JSON, nullable=True)
    structure_score = Column(Integer, nullable=True)
    quick_score = Column(Integer, nullable=True)
    uploaded_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="documents")
