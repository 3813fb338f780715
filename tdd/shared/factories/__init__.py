# Test data factories for creating model instances

from .base import BaseFactory, generate_clone_name, generate_timestamp, generate_uuid
from .models import ProjectFactory
from .api import clone_payload, commit_payload, merge_payload, project_create_payload

__all__ = [
    # Base utilities
    "BaseFactory",
    "generate_uuid",
    "generate_timestamp",
    "generate_clone_name",
    # Model factories
    "ProjectFactory",
    # API factories
    "project_create_payload",
    "clone_payload",
    "commit_payload",
    "merge_payload",
]
