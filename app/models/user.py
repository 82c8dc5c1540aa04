"""Platform accounts and their global roles."""
from sqlalchemy import Column, String, Boolean, DateTime, Table, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from app.database import Base
from app.db.types import JSONBType, GUID
from app.utils.timeutils import utcnow

user_role_association = Table(
    "user_role_association",
    Base.metadata,
    Column("user_id", GUID(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", GUID(), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """A person who annotates, reviews or manages projects.

    Global roles grant platform permissions; what a user may do inside a
    project is decided by their ``ProjectMember`` role.
    """

    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    roles = relationship("Role", secondary=user_role_association, back_populates="users", lazy="selectin")
    memberships = relationship("ProjectMember", back_populates="user", cascade="all, delete-orphan")


class Role(Base):
    """Global role; ``permissions`` holds ``Permission`` values."""

    __tablename__ = "roles"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    permissions = Column(JSONBType(), nullable=False, default=list)
    description = Column(Text, nullable=True)

    users = relationship("User", secondary=user_role_association, back_populates="roles")
