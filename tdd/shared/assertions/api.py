"""
Custom assertion helpers for API testing.

These helpers provide cleaner, more expressive assertions for common
patterns in API tests.
"""
import asyncio
from typing import Any

from httpx import AsyncClient, Response

STATUS_CATEGORIES = ("added", "changed", "missing", "modified", "removed", "untracked")


def assert_status_code(response: Response, expected: int) -> None:
    """Assert response has expected status code with helpful error message."""
    assert response.status_code == expected, (
        f"Expected status {expected}, got {response.status_code}. "
        f"Response body: {response.text}"
    )


def assert_json_contains(response: Response, expected: dict[str, Any] = None, **kwargs) -> None:
    """Assert response JSON contains all expected key-value pairs.

    This allows for partial matching - the response can contain additional
    fields not specified in expected.
    """
    if expected is None:
        expected = kwargs
    else:
        expected = {**expected, **kwargs}

    actual = response.json()
    for key, value in expected.items():
        assert key in actual, f"Expected key '{key}' not found in response: {actual}"
        assert actual[key] == value, (
            f"Expected {key}={value!r}, got {key}={actual[key]!r}"
        )


def assert_error_response(response: Response, status_code: int, reason: str) -> dict[str, Any]:
    """Assert response is a gateway error with expected status and reason code."""
    assert_status_code(response, status_code)
    actual = response.json()
    assert "reason" in actual, f"Expected 'reason' in error response: {actual}"
    assert "detail" in actual, f"Expected 'detail' in error response: {actual}"
    assert actual["reason"] == reason, (
        f"Expected reason '{reason}', got '{actual['reason']}'"
    )
    return actual


def assert_created_response(response: Response) -> dict[str, Any]:
    """Assert response is a successful creation (201) with a Location header."""
    assert_status_code(response, 201)
    assert "location" in response.headers, "Created response should carry a Location header"
    return response.json()


def assert_not_found(response: Response, resource_type: str = None) -> None:
    """Assert response is a 404 Not Found error.

    If resource_type is provided, checks for "{resource_type} not found".
    Otherwise, just checks for 404 status and any "not found" message.
    """
    actual = assert_error_response(response, 404, "not_found")

    if resource_type:
        expected_detail = f"{resource_type} not found"
        assert actual["detail"] == expected_detail, (
            f"Expected detail '{expected_detail}', got '{actual['detail']}'"
        )


def assert_malformed(response: Response) -> dict[str, Any]:
    """Assert response is a 400 malformed-request error."""
    return assert_error_response(response, 400, "malformed")


# -----------------------------------------------------------------------------
# Status Assertions
# -----------------------------------------------------------------------------

def status_paths(status: dict[str, Any], category: str) -> list[str]:
    return [entry["path"] for entry in status[category]]


def assert_status_shape(
    response: Response,
    **expected: list[str],
) -> dict[str, Any]:
    """Assert a status report lists exactly ``expected`` paths per category.

    Categories not named must be empty.
    """
    assert_status_code(response, 200)
    status = response.json()
    for category in STATUS_CATEGORIES:
        assert category in status, f"Status report missing category '{category}': {status}"
        wanted = sorted(expected.get(category, []))
        assert status_paths(status, category) == wanted, (
            f"Expected {category}={wanted}, got {status_paths(status, category)}"
        )
    return status


def assert_clean_status(response: Response) -> dict[str, Any]:
    return assert_status_shape(response)


# -----------------------------------------------------------------------------
# Task Assertions
# -----------------------------------------------------------------------------

async def wait_for_task(client: AsyncClient, task_location: str, timeout: float = 15.0) -> dict[str, Any]:
    """Poll a task resource until it reaches a terminal state."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        response = await client.get(task_location)
        assert_status_code(response, 200)
        task = response.json()
        if task["state"] in ("succeeded", "failed"):
            return task
        assert loop.time() < deadline, f"Task did not finish within {timeout}s: {task}"
        await asyncio.sleep(0.05)
