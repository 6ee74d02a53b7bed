# Overview: Generic per-entity persistence collaborator (get / get_all / put / delete).

from __future__ import annotations

from typing import Generic, TypeVar

from ..extensions import db
from ..errors import EntityNotFound

T = TypeVar("T")


class EntityStore(Generic[T]):
    """
    Thin read/write wrapper around one model.

    Writes only stage rows in the current session; committing is the caller's
    unit of work.
    """

    def __init__(self, model: type[T], label: str | None = None):
        self.model = model
        self.label = label or model.__name__

    def get(self, entity_id) -> T | None:
        if entity_id is None:
            return None
        return db.session.get(self.model, entity_id)

    def require(self, entity_id) -> T:
        entity = self.get(entity_id)
        if entity is None:
            raise EntityNotFound(f"{self.label} {entity_id} not found", details={"id": entity_id})
        return entity

    def get_all(self) -> list[T]:
        return db.session.query(self.model).all()

    def put(self, entity: T) -> T:
        db.session.add(entity)
        return entity

    def delete(self, entity_id) -> None:
        entity = self.require(entity_id)
        db.session.delete(entity)
