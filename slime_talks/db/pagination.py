"""
db/pagination.py
----------------
Cursor (keyset) pagination shared by every list operation.

A cursor is the external id (uuid) of the last item of the previous page.
The anchor row is looked up inside the operation's own base statement, so
it is automatically tenant-scoped; a cursor that does not resolve is
ignored and the first page is returned.

Keyset predicate for a descending listing:

    (key < :anchor_key) OR (key = :anchor_key AND id < :anchor_id)

and the mirrored ``>`` form for ascending listings. One extra row is fetched
to compute has_more. total_count is a second COUNT(*) over the base
statement, ignoring the cursor.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from slime_talks.core.config import settings
from slime_talks.core.exceptions import ValidationError

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    data: List[T] = field(default_factory=list)
    has_more: bool = False
    total_count: int = 0

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls(data=[], has_more=False, total_count=0)


def validate_limit(limit: int) -> int:
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationError.for_field(
            "limit", f"Limit must be between 1 and {settings.MAX_PAGE_SIZE}"
        )
    return limit


def keyset_predicate(order_key, tiebreak, anchor_key, anchor_id, descending: bool):
    if descending:
        return or_(
            order_key < anchor_key,
            and_(order_key == anchor_key, tiebreak < anchor_id),
        )
    return or_(
        order_key > anchor_key,
        and_(order_key == anchor_key, tiebreak > anchor_id),
    )


async def count_rows(db: AsyncSession, stmt: Select) -> int:
    subquery = stmt.order_by(None).subquery()
    result = await db.execute(select(func.count()).select_from(subquery))
    return result.scalar_one()


async def paginate(
    db: AsyncSession,
    stmt: Select,
    *,
    order_key,
    tiebreak,
    external_id,
    descending: bool,
    limit: int,
    cursor: Optional[str] = None,
    options: Sequence[Any] = (),
) -> Page:
    """
    Slice one page out of ``stmt``.

    Args:
        stmt:        Base statement with every filter of the operation
                     (tenant scope included) but no ORDER BY / LIMIT.
        order_key:   Primary ordering expression (a timestamp).
        tiebreak:    Integer surrogate key used to break ties.
        external_id: Column holding the cursor value (the row's uuid).
        descending:  Newest-first when True, oldest-first otherwise.
        options:     Loader options applied to the page query only.

    Returns:
        Page whose data holds whatever the statement selects: ORM objects
        for single-entity statements, Row tuples otherwise.
    """
    validate_limit(limit)

    total_count = await count_rows(db, stmt)

    page_stmt = stmt
    if cursor:
        anchor_result = await db.execute(
            stmt.with_only_columns(order_key, tiebreak).where(external_id == cursor).limit(1)
        )
        anchor = anchor_result.first()
        if anchor is not None:
            page_stmt = page_stmt.where(
                keyset_predicate(order_key, tiebreak, anchor[0], anchor[1], descending)
            )

    if descending:
        page_stmt = page_stmt.order_by(order_key.desc(), tiebreak.desc())
    else:
        page_stmt = page_stmt.order_by(order_key.asc(), tiebreak.asc())
    if options:
        page_stmt = page_stmt.options(*options)

    result = await db.execute(page_stmt.limit(limit + 1))
    rows = [row[0] if len(row) == 1 else row for row in result.all()]

    has_more = len(rows) > limit
    if has_more:
        rows = rows[:limit]

    return Page(data=rows, has_more=has_more, total_count=total_count)
