"""
repositories/base.py
--------------------
Tenant isolation guard.

Critical security invariant:
  Every query MUST include tenant_id in the WHERE clause.
  TenantScopedRepository.scoped() is the only way repositories build a
  statement against a tenant-owned table, so a lookup for another tenant's
  row simply finds nothing and the service reports NotFound.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class TenantScopedRepository(Generic[ModelT]):
    model: Type[ModelT]

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def scoped(self, tenant_id: int, *criteria: Any) -> Select:
        return select(self.model).where(self.model.tenant_id == tenant_id, *criteria)

    async def first(self, stmt: Select) -> Optional[ModelT]:
        result = await self.db.execute(stmt.limit(1))
        return result.scalars().first()

    async def get_by_uuid(self, tenant_id: int, uuid: str) -> Optional[ModelT]:
        return await self.first(self.scoped(tenant_id, self.model.uuid == uuid))

    async def add(self, instance: ModelT) -> ModelT:
        self.db.add(instance)
        await self.db.flush()
        return instance
