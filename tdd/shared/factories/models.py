"""
Model factories for SQLAlchemy models.
"""
import factory

from repogate.models import Project

from .base import BaseFactory, fake, generate_timestamp, generate_uuid


class ProjectFactory(BaseFactory):
    """Factory for linked Project models."""

    class Meta:
        model = Project

    id = factory.LazyFunction(generate_uuid)
    name = factory.LazyFunction(lambda: fake.word().capitalize() + "Repo")
    content_location = factory.LazyAttribute(lambda o: f"/srv/repos/{o.name.lower()}")
    created_at = factory.LazyFunction(generate_timestamp)
