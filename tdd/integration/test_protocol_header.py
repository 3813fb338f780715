"""
Integration tests for the protocol-version header on mutating requests.
"""
import sys
from pathlib import Path

import pytest

# Add backend and tdd to path for imports
backend_path = Path(__file__).parent.parent.parent / "backend"
tdd_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))
sys.path.insert(0, str(tdd_path))

from shared.assertions import assert_malformed, assert_status_code
from shared.factories import project_create_payload


class TestProtocolHeader:
    """Mutations without a supported Gateway-Version are malformed."""

    async def test_link_without_header(self, client, work_repo):
        response = await client.post("/api/projects", json=project_create_payload(work_repo))
        body = assert_malformed(response)
        assert "Gateway-Version" in body["detail"]

    async def test_unsupported_version(self, client, work_repo):
        response = await client.post(
            "/api/projects", json=project_create_payload(work_repo), headers={"Gateway-Version": "99"},
        )
        assert_malformed(response)

    @pytest.mark.parametrize(
        "method,suffix,body",
        [
            ("PUT", "git/index", None),
            ("POST", "git/commit", {"message": "msg"}),
            ("POST", "git/head", {"branch": "master"}),
            ("POST", "git/remote/origin", {"fetch": True}),
        ],
    )
    async def test_git_mutations_require_header(self, client, project, method, suffix, body):
        response = await client.request(method, f"/api/projects/{project['id']}/{suffix}", json=body)
        assert_malformed(response)

    async def test_reads_do_not_require_header(self, client, project):
        response = await client.get(f"/api/projects/{project['id']}/git/status")
        assert_status_code(response, 200)
