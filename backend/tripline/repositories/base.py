from __future__ import annotations

from typing import ClassVar, Generic, TypeVar

from sqlalchemy.orm import Session

from tripline.models import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Session bound data access for one mapped model."""

    model: ClassVar[type[Base]]

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, record_id: str) -> ModelT | None:
        return self.session.get(self.model, record_id)

    def add(self, record: ModelT) -> ModelT:
        self.session.add(record)
        self.session.flush()
        return record
