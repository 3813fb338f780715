# Custom assertion helpers

from .api import (
    STATUS_CATEGORIES,
    assert_clean_status,
    assert_created_response,
    assert_error_response,
    assert_json_contains,
    assert_malformed,
    assert_not_found,
    assert_status_code,
    assert_status_shape,
    status_paths,
    wait_for_task,
)

__all__ = [
    # API assertions
    "assert_status_code",
    "assert_json_contains",
    "assert_error_response",
    "assert_created_response",
    "assert_not_found",
    "assert_malformed",
    # Status assertions
    "STATUS_CATEGORIES",
    "status_paths",
    "assert_status_shape",
    "assert_clean_status",
    # Task assertions
    "wait_for_task",
]
