"""Document-style access to the SQL tables.

Handlers talk to persistence through ``DocumentStore``: ``find``,
``find_by_id``, ``insert``, ``update_by_id`` and ``delete_by_id`` over one
model class. Database failures are logged and re-raised as
``PersistenceError`` so the HTTP layer can answer with a generic 500.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generic, Iterator, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from scoresheet.errors import PersistenceError
from scoresheet.utils import utcnow

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class DocumentStore(Generic[ModelT]):
    def __init__(self, session: Session, model: type[ModelT]):
        self.session = session
        self.model = model

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.exception("%s %s failed", action, self.model.__name__)
            raise PersistenceError(f"Could not {action} {self.model.__name__}") from exc

    def find(self, **filters: Any) -> list[ModelT]:
        """Return every document whose fields equal the given values, oldest first."""
        statement = select(self.model)
        for name, value in filters.items():
            statement = statement.where(getattr(self.model, name) == value)
        statement = statement.order_by(self.model.id)
        with self._guard("find"):
            return list(self.session.exec(statement).all())

    def find_one(self, **filters: Any) -> Optional[ModelT]:
        found = self.find(**filters)
        return found[0] if found else None

    def find_by_id(self, doc_id: Any) -> Optional[ModelT]:
        with self._guard("load"):
            return self.session.get(self.model, doc_id)

    def insert(self, doc: ModelT, *, commit: bool = True) -> ModelT:
        """
        Adds the document and returns it with its id populated. With
        commit=False the caller owns the transaction; the row is only flushed.
        """
        with self._guard("insert"):
            self.session.add(doc)
            self._finish(commit)
            self.session.refresh(doc)
        return doc

    def update_by_id(self, doc_id: Any, patch: dict[str, Any], *, commit: bool = True) -> Optional[ModelT]:
        doc = self.find_by_id(doc_id)
        if doc is None:
            return None
        for name, value in patch.items():
            if name not in self.model.model_fields:
                raise ValueError(f"{self.model.__name__} has no field {name!r}")
            setattr(doc, name, value)
        if "updated_at" in self.model.model_fields and "updated_at" not in patch:
            doc.updated_at = utcnow()
        with self._guard("update"):
            self.session.add(doc)
            self._finish(commit)
            self.session.refresh(doc)
        return doc

    def delete_by_id(self, doc_id: Any, *, commit: bool = True) -> bool:
        doc = self.find_by_id(doc_id)
        if doc is None:
            return False
        with self._guard("delete"):
            self.session.delete(doc)
            self._finish(commit)
        return True

    def _finish(self, commit: bool) -> None:
        if commit:
            self.session.commit()
        else:
            self.session.flush()
