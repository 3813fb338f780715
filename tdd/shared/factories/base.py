"""
Base factory classes and utilities.

This module provides the foundation for creating test data factories
using factory_boy with SQLAlchemy models.
"""
from datetime import datetime
from typing import Any
from uuid import uuid4

import factory
from faker import Faker

fake = Faker()


class BaseFactory(factory.Factory):
    """Base factory for all model factories."""

    class Meta:
        abstract = True

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Override create to handle SQLAlchemy models."""
        return model_class(*args, **kwargs)

    @classmethod
    def create_dict(cls, **kwargs) -> dict[str, Any]:
        """Create a dictionary representation suitable for API requests."""
        obj = cls.build(**kwargs)
        return {
            key: getattr(obj, key)
            for key in cls._meta.model.__table__.columns.keys()
            if hasattr(obj, key) and getattr(obj, key) is not None
        }


def generate_uuid() -> str:
    """Generate a UUID string for use as an ID."""
    return str(uuid4())


def generate_timestamp() -> datetime:
    """Generate a current UTC timestamp."""
    return datetime.utcnow()


def generate_clone_name() -> str:
    """Generate a directory-safe clone name."""
    return f"{fake.word()}-{fake.word()}-{uuid4().hex[:6]}"
