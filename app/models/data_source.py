"""Data source and asset models."""
from enum import Enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Enum as SQLEnum
from sqlalchemy.sql import func

from app.database import Base
from app.db.types import GUID, JSONBType
from app.utils.timeutils import utcnow


class DataSourceType(str, Enum):
    """Backing storage kind of a data source."""

    MINIO_BUCKET = "MINIO_BUCKET"
    S3_BUCKET = "S3_BUCKET"
    GSC_BUCKET = "GSC_BUCKET"
    AZURE_BLOB_STORAGE = "AZURE_BLOB_STORAGE"
    LOCAL_DIRECTORY = "LOCAL_DIRECTORY"
    DATABASE = "DATABASE"
    API = "API"
    OTHER = "OTHER"


class DataSourceStatus(str, Enum):
    """Data source status."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SYNCING = "SYNCING"
    ERROR = "ERROR"
    ARCHIVED = "ARCHIVED"


class AssetStatus(str, Enum):
    """Asset import status."""

    PENDING_IMPORT = "PENDING_IMPORT"
    IMPORTED = "IMPORTED"
    IMPORT_ERROR = "IMPORT_ERROR"
    ARCHIVED = "ARCHIVED"


class DataSource(Base):
    """Pool of assets a workflow stage reads from or pushes to."""

    __tablename__ = "data_sources"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    source_type = Column(SQLEnum(DataSourceType), nullable=False, default=DataSourceType.MINIO_BUCKET)
    status = Column(SQLEnum(DataSourceStatus), nullable=False, default=DataSourceStatus.ACTIVE)
    is_default = Column(Boolean, nullable=False, default=False)
    connection_details = Column(JSONBType(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class Asset(Base):
    """A media item sitting in exactly one data source."""

    __tablename__ = "assets"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    data_source_id = Column(GUID(), ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String(512), nullable=False)  # Object key inside the pool
    filename = Column(String(255), nullable=True)
    mime_type = Column(String(100), nullable=True)
    status = Column(SQLEnum(AssetStatus), nullable=False, default=AssetStatus.IMPORTED, index=True)
    meta_data = Column(JSONBType(), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )
