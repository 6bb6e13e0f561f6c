# pharmapricing/crud/base.py

from typing import Any, Generic, Optional, Type, TypeVar
from pydantic import BaseModel
from sqlalchemy.orm import Session
from ..database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType]):
    """
    Base read/create operations for a SQLAlchemy model and its Pydantic
    create schema. Pricing administration edits happen outside this service,
    so there is no update/remove here.
    """
    def __init__(self, model: Type[ModelType]):
        """
        :param model: the SQLAlchemy model class (e.g. models.Promotion)
        """
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        """Fetches a single object by primary key (identity map first)."""
        return db.get(self.model, id)

    def create(self, db: Session, *, obj_in: CreateSchemaType) -> ModelType:
        """Creates and commits a new object."""
        db_obj = self.model(**obj_in.model_dump())
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj
