"""Test data factories for the verdict service."""

from tests.factories.settings_factory import TEST_JWT_SECRET, make_settings
from tests.factories.request_factory import (
    comparison_body,
    comparison_payload,
    comparison_verdict,
    make_verdict,
    split_test_body,
    split_test_payload,
    split_verdict,
    standard_body,
    standard_payload,
    standard_verdict,
)

__all__ = [
    "TEST_JWT_SECRET",
    "make_settings",
    "comparison_body",
    "comparison_payload",
    "comparison_verdict",
    "make_verdict",
    "split_test_body",
    "split_test_payload",
    "split_verdict",
    "standard_body",
    "standard_payload",
    "standard_verdict",
]
