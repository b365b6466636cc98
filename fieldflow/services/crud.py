"""Generic CRUD manager shared by the simple model-backed services."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from fieldflow.services.common import coerce_uuid
from fieldflow.services.errors import NotFoundError

TModel = TypeVar("TModel")


class CRUDManager(Generic[TModel]):
    model: type[TModel] | None = None
    not_found_error: type[NotFoundError] = NotFoundError
    not_found_detail: str = "Resource not found"

    @classmethod
    def _require_model(cls) -> type[TModel]:
        if cls.model is None:
            raise RuntimeError(f"{cls.__name__}.model must be set")
        return cls.model

    @classmethod
    def _payload_dict(cls, payload: Any, *, exclude_unset: bool) -> dict[str, Any]:
        if hasattr(payload, "model_dump"):
            return cast(dict[str, Any], payload.model_dump(exclude_unset=exclude_unset))
        if isinstance(payload, Mapping):
            return dict(payload)
        return dict(payload)

    @classmethod
    def _get_or_404(cls, db, entity_id) -> TModel:
        model = cls._require_model()
        entity = db.get(model, coerce_uuid(entity_id))
        if not entity:
            raise cls.not_found_error(cls.not_found_detail, details={"id": str(entity_id)})
        return entity

    @classmethod
    def create(cls, db, payload) -> TModel:
        model = cls._require_model()
        entity = model(**cls._payload_dict(payload, exclude_unset=False))
        db.add(entity)
        db.commit()
        db.refresh(entity)
        return entity

    @classmethod
    def get(cls, db, entity_id) -> TModel:
        return cls._get_or_404(db, entity_id)

    @classmethod
    def update(cls, db, entity_id, payload) -> TModel:
        entity = cls._get_or_404(db, entity_id)
        for key, value in cls._payload_dict(payload, exclude_unset=True).items():
            setattr(entity, key, value)
        db.commit()
        db.refresh(entity)
        return entity

    @classmethod
    def delete(cls, db, entity_id) -> None:
        entity = cls._get_or_404(db, entity_id)
        db.delete(entity)
        db.commit()
