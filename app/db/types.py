"""Column types that behave the same on PostgreSQL and SQLite."""
from __future__ import annotations

import uuid

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.types import CHAR, JSON, TypeDecorator


def JSONBType(**kwargs):
    """JSONB on PostgreSQL, plain JSON on the SQLite test database."""
    return JSONB(**kwargs).with_variant(JSON(), "sqlite")


class GUID(TypeDecorator):
    """UUID primary and foreign keys.

    Native ``uuid`` on PostgreSQL; a 36 character string elsewhere.
    Values always come back as ``uuid.UUID``.
    """

    impl = CHAR(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        return value if dialect.name == "postgresql" else str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))
