"""
Unit tests for the error taxonomy and settings.
"""
import sys
from pathlib import Path

import pytest

# Add backend to path for imports
backend_path = Path(__file__).parent.parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from repogate.config import Settings, get_settings
from repogate.errors import (
    REPOSITORY_BUSY,
    EngineFailure,
    GatewayError,
    MalformedError,
    NotFoundError,
    RejectedError,
)
from repogate.services.gateway import clone_name_from_url


class TestErrorTaxonomy:
    """Each error class maps to a status code and a default reason."""

    @pytest.mark.parametrize(
        "error_class,status_code,reason",
        [
            (NotFoundError, 404, "not_found"),
            (MalformedError, 400, "malformed"),
            (RejectedError, 409, "rejected"),
            (EngineFailure, 500, "engine_failure"),
        ],
    )
    def test_defaults(self, error_class, status_code, reason):
        error = error_class("message")
        assert isinstance(error, GatewayError)
        assert error.status_code == status_code
        assert error.reason == reason

    def test_explicit_reason_overrides_default(self):
        error = RejectedError("busy", REPOSITORY_BUSY)
        assert error.to_dict() == {"reason": "repository_busy", "detail": "busy"}


class TestSettings:
    """Tests for Settings defaults and environment overrides."""

    def test_defaults(self):
        settings = Settings()
        assert settings.task_retention_seconds == 300
        assert settings.mutation_lock_timeout == 30
        assert settings.protocol_version_header == "Gateway-Version"
        assert settings.supported_protocol_versions == ["1"]

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("REPOGATE_TASK_RETENTION", "5")
        monkeypatch.setenv("REPOGATE_CLONE_ROOT", str(tmp_path))
        get_settings.cache_clear()
        try:
            settings = get_settings()
            assert settings.task_retention_seconds == 5
            assert settings.clone_root == tmp_path
        finally:
            get_settings.cache_clear()


class TestCloneNames:
    """Tests for clone_name_from_url()."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/org/project.git", "project"),
            ("https://example.com/org/project/", "project"),
            ("git@example.com:org/tool.git", "tool"),
            ("/srv/repos/local", "local"),
        ],
    )
    def test_name_from_url(self, url, expected):
        assert clone_name_from_url(url) == expected
