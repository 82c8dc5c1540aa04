"""Generic CRUD base class."""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType")
UpdateSchemaType = TypeVar("UpdateSchemaType")


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """CRUD object with default async methods to Create, Read, Update, Delete.

    Write methods commit by default. Pass ``commit=False`` to only flush so the
    caller owns the transaction boundary.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        for field, value in (filters or {}).items():
            if value is None or not hasattr(self.model, field):
                continue
            column = getattr(self.model, field)
            if isinstance(value, (list, tuple, set)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)
        return query

    async def _persist(self, db: AsyncSession, db_obj: ModelType, commit: bool) -> ModelType:
        db.add(db_obj)
        if commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj

    async def get(self, db: AsyncSession, id: UUID) -> Optional[ModelType]:
        """Get a single record by primary key."""
        return await db.get(self.model, id)

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Any = None,
    ) -> List[ModelType]:
        """Get a filtered page of records."""
        query = self._apply_filters(select(self.model), filters)
        if order_by is not None:
            query = query.order_by(order_by)
        elif hasattr(self.model, "created_at"):
            query = query.order_by(self.model.created_at)
        result = await db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, *, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching the filters."""
        query = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await db.execute(query)
        return int(result.scalar_one())

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, Dict[str, Any]],
        commit: bool = True,
    ) -> ModelType:
        """Create a new record."""
        obj_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        db_obj = self.model(**obj_data)
        return await self._persist(db, db_obj, commit)

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
        commit: bool = True,
    ) -> ModelType:
        """Update a record with the given fields."""
        if isinstance(obj_in, BaseModel):
            update_data = obj_in.model_dump(exclude_unset=True)
        else:
            update_data = dict(obj_in)
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        return await self._persist(db, db_obj, commit)

    async def remove(self, db: AsyncSession, *, id: UUID, commit: bool = True) -> Optional[ModelType]:
        """Delete a record by primary key."""
        db_obj = await db.get(self.model, id)
        if db_obj is None:
            return None
        await db.delete(db_obj)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return db_obj
