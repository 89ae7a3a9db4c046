from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from typing import Generic, List, Type, TypeVar
import logging

from pydantic import BaseModel

from ..core.database import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

class ContentService(Generic[ModelT]):
    """CRUD for administrator-owned content records (services, testimonials, posts)."""

    def __init__(self, db: Session, model: Type[ModelT], label: str):
        self.db = db
        self.model = model
        self.label = label

    def list(self) -> List[ModelT]:
        return self.db.query(self.model).order_by(self.model.created_at.desc()).all()

    def get(self, item_id: str) -> ModelT:
        item = self.db.query(self.model).filter(self.model.id == item_id).first()
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{self.label} not found"
            )
        return item

    def create(self, data: BaseModel) -> ModelT:
        item = self.model(**data.model_dump())
        self.db.add(item)
        self._commit(f"adding {self.label.lower()}")
        self.db.refresh(item)
        return item

    def update(self, item_id: str, data: BaseModel) -> ModelT:
        item = self.get(item_id)
        for name, value in data.model_dump(exclude_unset=True).items():
            setattr(item, name, value)
        self._commit(f"updating {self.label.lower()}")
        self.db.refresh(item)
        return item

    def delete(self, item_id: str) -> None:
        item = self.get(item_id)
        self.db.delete(item)
        self._commit(f"deleting {self.label.lower()}")

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error {action}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed {action}"
            )
