"""
Base repository for soft-deletable models.

Every read goes through ``_active()`` so rows flagged ``is_deleted`` are
invisible. Repositories flush but never commit; the caller's
``DatabaseManager.transaction()`` owns the commit.
"""

from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from gallery.models import Base, utcnow

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100


class BaseRepository:
    """Shared queries; subclasses pass their model class."""

    def __init__(self, session: AsyncSession, model: Type[Base]):
        if not isinstance(session, AsyncSession):
            raise TypeError(
                f"session must be AsyncSession instance, got {type(session).__name__}"
            )
        self.session = session
        self.model = model

    @property
    def _name(self) -> str:
        return self.model.__name__

    def _active(self) -> Select:
        return select(self.model).where(self.model.is_deleted == False)  # noqa: E712

    async def get(self, id: UUID) -> Optional[Base]:
        """The live row with ``id``, or None if missing or soft deleted."""
        if id is None:
            raise ValueError("Entity id is required (cannot be None)")
        result = await self.session.execute(self._active().where(self.model.id == id))
        return result.scalar_one_or_none()

    async def paginate(
        self, stmt: Select, page: int, page_size: int
    ) -> Tuple[List[Base], int]:
        """
        Run ``stmt`` for one page and count the full result set.

        Raises:
            ValueError: On out-of-range paging arguments
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = (await self.session.execute(count_stmt)).scalar_one()

        rows = await self.session.execute(
            stmt.offset((page - 1) * page_size).limit(page_size)
        )
        items = list(rows.scalars().unique().all())

        logger.debug(
            "Page loaded", model=self._name, page=page, count=len(items), total=total
        )
        return items, total

    async def create(self, obj: Base) -> Base:
        """Add ``obj`` and flush so generated columns are populated."""
        if not isinstance(obj, self.model):
            raise TypeError(f"Entity must be {self._name} instance, got {type(obj).__name__}")

        self.session.add(obj)
        await self.session.flush()
        logger.info("Entity created", model=self._name, entity_id=str(obj.id))
        return obj

    async def update(self, obj: Base, changes: Dict[str, Any]) -> Base:
        """Apply ``changes`` to a loaded entity, bump ``updated_at`` and flush."""
        unknown = [field for field in changes if not hasattr(self.model, field)]
        if unknown:
            raise ValueError(f"Unknown fields for {self._name}: {', '.join(unknown)}")

        for field, value in changes.items():
            setattr(obj, field, value)
        obj.updated_at = utcnow()
        await self.session.flush()

        logger.info(
            "Entity updated",
            model=self._name,
            entity_id=str(obj.id),
            fields=sorted(changes),
        )
        return obj

    async def soft_delete(self, obj: Base) -> None:
        obj.mark_deleted()
        await self.session.flush()
        logger.info("Entity soft deleted", model=self._name, entity_id=str(obj.id))
