"""
API request/response factories.

These factories create dictionaries suitable for API request payloads.
"""
from pathlib import Path
from typing import Any

from faker import Faker

from .base import generate_clone_name

fake = Faker()


def project_create_payload(content_location: Path | str, name: str | None = None) -> dict[str, Any]:
    """Create a payload for POST /api/projects."""
    return {
        "content_location": str(content_location),
        "name": name or fake.word().capitalize() + "Repo",
    }


def clone_payload(url: Path | str, name: str | None = None) -> dict[str, Any]:
    """Create a payload for POST /api/git/clone."""
    return {"url": str(url), "name": name or generate_clone_name()}


def commit_payload(message: str | None = None, amend: bool = False) -> dict[str, Any]:
    """Create a payload for POST .../git/commit."""
    return {"message": message or fake.sentence(), "amend": amend}


def merge_payload(ref: str) -> dict[str, Any]:
    return {"merge": ref}
