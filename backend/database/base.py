"""
SQLAlchemy Base Configuration

Declarative base for the ExamForge tables. Each aggregate is stored as a
JSON document alongside the scalar columns that queries and constraints need.
"""

from typing import Any, Dict
import logging
from sqlalchemy import JSON, Column, MetaData, String
from sqlalchemy.ext.declarative import declarative_base

# Configure module logger
logger = logging.getLogger(__name__)

# Configure naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

# Create metadata with naming convention
metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class DocumentModel(Base):
    """
    Base class for tables that hold a serialized domain object.

    Subclasses list the document keys they mirror into real columns in
    ``__indexed_fields__``; ``from_document`` and ``refresh_from`` keep the
    two in step.
    """

    __abstract__ = True
    __indexed_fields__: tuple = ()

    id = Column(String(64), primary_key=True)
    document = Column(JSON, nullable=False)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> Any:
        row = cls(id=document["id"])
        row.refresh_from(document)
        return row

    def refresh_from(self, document: Dict[str, Any]) -> None:
        """Replace the stored document and its indexed copies."""
        self.document = document
        for column in self.__indexed_fields__:
            setattr(self, column, document.get(column))

    @classmethod
    def indexed_values(cls, document: Dict[str, Any]) -> Dict[str, Any]:
        """Column values for an UPDATE statement built from a document."""
        values = {column: document.get(column) for column in cls.__indexed_fields__}
        values["document"] = document
        return values
