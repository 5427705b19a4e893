"""
Base model class for all database models.

Provides common functionality and fields for all models:
- Primary key (opaque string identifier, uuid4 by default)
- Timestamp fields (created_at, updated_at)
- Utility methods (to_dict, update_from_dict)
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base, validates

from src.utils.datetime_utils import utc_now

# Create the declarative base for all models
Base = declarative_base()


def new_id() -> str:
    """Generate a new opaque entity identifier."""
    return str(uuid_lib.uuid4())


class BaseModel(Base):
    """
    Abstract base model with common fields and methods.

    All models should inherit from this class to get:
    - id: Opaque string primary key, unique per entity type
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last modified
    - to_dict(): Convert model to dictionary
    """

    __abstract__ = True

    # Fields computed by the services; never accepted from edit payloads
    DERIVED_FIELDS: tuple = ()

    id = Column(String(64), primary_key=True, default=new_id)

    # Timestamp fields
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            include_relationships: If True, include related objects (default: False)

        Returns:
            Dictionary representation of the model
        """
        result = {}

        # Include all column values
        for column in self.__table__.columns:
            value = getattr(self, column.name)

            # Convert dates to ISO format strings, Decimals to strings
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)

            result[column.name] = value

        # Optionally include relationships
        if include_relationships:
            for relationship in self.__mapper__.relationships:
                rel_name = relationship.key
                rel_value = getattr(self, rel_name)

                if rel_value is None:
                    result[rel_name] = None
                elif isinstance(rel_value, list):
                    # One-to-many relationship
                    result[rel_name] = [item.to_dict() for item in rel_value]
                else:
                    # Many-to-one relationship
                    result[rel_name] = rel_value.to_dict()

        return result

    @validates("id")
    def _validate_id(self, _key: str, value: Any) -> str:
        """Normalize identifiers to strings."""
        if value is None:
            return value
        return str(value)

    def update_from_dict(self, data: Dict[str, Any], allowed: Iterable[str] = None) -> None:
        """
        Update model instance from dictionary.

        Only updates plain column fields present in the dictionary. Identity,
        timestamps and derived fields are never touched.

        Args:
            data: Dictionary with field names and values
            allowed: Optional whitelist of field names to apply
        """
        protected = {"id", "created_at", "updated_at", *self.DERIVED_FIELDS}
        for column in self.__table__.columns:
            if column.name not in data or column.name in protected:
                continue
            if allowed is not None and column.name not in allowed:
                continue
            setattr(self, column.name, data[column.name])

        # Update timestamp
        self.updated_at = utc_now()

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "ClassName(id='...', name='...')"
        """
        class_name = self.__class__.__name__
        attrs = []

        if getattr(self, "id", None) is not None:
            attrs.append(f"id='{self.id}'")

        # Include name if it exists (common field)
        if getattr(self, "name", None) is not None:
            attrs.append(f"name='{self.name}'")

        attrs_str = ", ".join(attrs)
        return f"{class_name}({attrs_str})"
