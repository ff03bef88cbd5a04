"""Repository layer for Category and Item.

``Repository`` is the storage contract the API and the seed data generator
program against. ``SQLModelRepository`` binds it to a SQLAlchemy engine with
one session (and one transaction) per logical operation: a single save, a
single batch flush or a single page read. Nothing keeps a session open
between calls, so one repository instance can be shared across request
threads.

Copyright (c) Bryn Gwalad 2025
"""

import logging
import math
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from typing import Any, Dict, Generic, Iterable, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import delete, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload
from sqlmodel import Session, SQLModel, select

from api.models import Category, Item
from utils import settings
from utils.database import get_session, session_scope
from utils.errors import ConstraintViolationError, DependencyIntegrityError, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


@dataclass
class Page(Generic[T]):
    """One page of a paged query plus the total row count."""

    content: List[T] = field(default_factory=list)
    total_elements: int = 0
    number: int = 0
    size: int = 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size)


def _check_paging(page: int, size: int) -> None:
    if page < 0:
        raise ValueError("page must be >= 0")
    if size < 1:
        raise ValueError("size must be >= 1")


def _chunks(entities: Iterable[T], size: int) -> Iterator[List[T]]:
    iterator = iter(entities)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


class Repository(ABC, Generic[T]):
    """Storage contract shared by every entity type."""

    @abstractmethod
    def find_by_id(self, entity_id: int) -> Optional[T]:
        """Return the entity or None when absent."""

    @abstractmethod
    def find_all(self, page: int, size: int) -> Page[T]:
        """Return page ``page`` (zero based) of ``size`` entities in id order."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Insert or merge one entity and return the persisted instance."""

    @abstractmethod
    def save_batch(self, entities: Iterable[T], batch_size: Optional[int] = None) -> int:
        """Persist ``entities`` in transactions of at most ``batch_size`` rows."""

    @abstractmethod
    def update(self, entity_id: int, values: Dict[str, Any]) -> T:
        """Replace the mutable fields of an existing entity."""

    @abstractmethod
    def exists_by_id(self, entity_id: int) -> bool:
        ...

    @abstractmethod
    def delete_by_id(self, entity_id: int) -> None:
        """Delete an entity, raising NotFoundError when absent."""

    @abstractmethod
    def count(self) -> int:
        ...


class SQLModelRepository(Repository[T]):
    model: Type[T]
    entity_name: str = "Entity"
    # Fields never copied from caller input on update.
    immutable_fields = ("id", "updated_at")

    def __init__(self, bind: Optional[Engine] = None, batch_size: Optional[int] = None):
        self.bind = bind
        self.batch_size = settings.SEED_BATCH_SIZE if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with session_scope(self.bind) as session:
                yield session
        except IntegrityError as exc:
            raise ConstraintViolationError(
                f"{self.entity_name} violates a storage constraint: {exc.orig}",
                entity=self.entity_name,
            ) from exc

    @staticmethod
    def _touch(entity: T) -> None:
        now = datetime.now(timezone.utc)
        previous = getattr(entity, "updated_at", None)
        if previous is not None:
            # SQLite hands stored values back without tzinfo; they are UTC.
            if previous.tzinfo is None:
                previous = previous.replace(tzinfo=timezone.utc)
            if previous > now:
                now = previous
        entity.updated_at = now

    def _validate(self, session: Session, entity: T) -> None:
        """Hook for entity rules checked before a write."""

    def _validate_batch(self, session: Session, entities: List[T]) -> None:
        for entity in entities:
            self._validate(session, entity)

    def _before_delete(self, session: Session, entity: T) -> None:
        """Hook for dependency checks before a delete."""

    def find_by_id(self, entity_id: int) -> Optional[T]:
        with get_session(self.bind) as session:
            return session.get(self.model, entity_id)

    def find_all(self, page: int, size: int) -> Page[T]:
        _check_paging(page, size)
        with get_session(self.bind) as session:
            statement = select(self.model).order_by(self.model.id).offset(page * size).limit(size)
            content = list(session.exec(statement).all())
            total = session.exec(select(func.count()).select_from(self.model)).one()
        return Page(content=content, total_elements=total, number=page, size=size)

    def save(self, entity: T) -> T:
        with self._transaction() as session:
            self._validate(session, entity)
            self._touch(entity)
            if entity.id is not None:
                entity = session.merge(entity)
            else:
                session.add(entity)
            session.flush()
        return entity

    def save_batch(self, entities: Iterable[T], batch_size: Optional[int] = None) -> int:
        """Persist ``entities`` chunk by chunk.

        Each chunk is written in its own transaction, so a failure leaves
        earlier chunks committed and nothing of the failing one. ``entities``
        may be a generator; at most one chunk is held in memory.
        """
        size = self.batch_size if batch_size is None else batch_size
        if size < 1:
            raise ValueError("batch_size must be >= 1")
        saved = 0
        for chunk in _chunks(entities, size):
            with self._transaction() as session:
                self._validate_batch(session, chunk)
                for entity in chunk:
                    self._touch(entity)
                session.add_all(chunk)
                session.flush()
            saved += len(chunk)
        return saved

    def update(self, entity_id: int, values: Dict[str, Any]) -> T:
        with self._transaction() as session:
            entity = session.get(self.model, entity_id)
            if entity is None:
                raise NotFoundError(
                    f"{self.entity_name} not found with id: {entity_id}",
                    entity=self.entity_name,
                    entity_id=entity_id,
                )
            for key, value in values.items():
                if key not in self.immutable_fields:
                    setattr(entity, key, value)
            self._validate(session, entity)
            self._touch(entity)
            session.add(entity)
            session.flush()
        return entity

    def exists_by_id(self, entity_id: int) -> bool:
        with get_session(self.bind) as session:
            return session.exec(select(self.model.id).where(self.model.id == entity_id)).first() is not None

    def delete_by_id(self, entity_id: int) -> None:
        with self._transaction() as session:
            entity = session.get(self.model, entity_id)
            if entity is None:
                raise NotFoundError(
                    f"{self.entity_name} not found with id: {entity_id}",
                    entity=self.entity_name,
                    entity_id=entity_id,
                )
            self._before_delete(session, entity)
            session.delete(entity)

    def delete_all(self) -> int:
        """Remove every row. Used by operators to reset the store."""
        with self._transaction() as session:
            result = session.connection().execute(delete(self.model))
            return result.rowcount

    def count(self) -> int:
        with get_session(self.bind) as session:
            return session.exec(select(func.count()).select_from(self.model)).one()


class CategoryRepository(SQLModelRepository[Category]):
    model = Category
    entity_name = "Category"

    def _before_delete(self, session: Session, entity: Category) -> None:
        owned = session.exec(
            select(func.count()).select_from(Item).where(Item.category_id == entity.id)
        ).one()
        if owned:
            raise DependencyIntegrityError(
                f"Category {entity.id} still owns {owned} item(s)",
                entity=self.entity_name,
                entity_id=entity.id,
            )


class ItemRepository(SQLModelRepository[Item]):
    model = Item
    entity_name = "Item"

    def __init__(
        self,
        bind: Optional[Engine] = None,
        batch_size: Optional[int] = None,
        category_required: Optional[bool] = None,
    ):
        super().__init__(bind, batch_size)
        if category_required is None:
            category_required = settings.ITEM_CATEGORY_REQUIRED
        self.category_required = category_required

    def _check_category_ids(self, session: Session, category_ids: List[Optional[int]]) -> None:
        if self.category_required and None in category_ids:
            raise ConstraintViolationError("Item category is required", entity=self.entity_name)
        wanted = {cid for cid in category_ids if cid is not None}
        if not wanted:
            return
        found = set(session.exec(select(Category.id).where(Category.id.in_(wanted))).all())
        missing = wanted - found
        if missing:
            raise ConstraintViolationError(
                f"Category does not exist: {sorted(missing)}",
                entity=self.entity_name,
            )

    def _validate(self, session: Session, entity: Item) -> None:
        self._check_category_ids(session, [entity.category_id])

    def _validate_batch(self, session: Session, entities: List[Item]) -> None:
        self._check_category_ids(session, [entity.category_id for entity in entities])

    def find_by_category(self, category_id: int, page: int, size: int) -> Page[Item]:
        """Return a page of items owned by ``category_id``.

        The Category relation is loaded in the same query (a join), so each
        returned item carries a resolved ``category`` that stays readable
        after the session is gone.
        """
        _check_paging(page, size)
        with get_session(self.bind) as session:
            statement = (
                select(Item)
                .options(joinedload(Item.category))
                .where(Item.category_id == category_id)
                .order_by(Item.id)
                .offset(page * size)
                .limit(size)
            )
            content = list(session.exec(statement).all())
        total = self.count_by_category(category_id)
        return Page(content=content, total_elements=total, number=page, size=size)

    def count_by_category(self, category_id: int) -> int:
        with get_session(self.bind) as session:
            return session.exec(
                select(func.count()).select_from(Item).where(Item.category_id == category_id)
            ).one()
