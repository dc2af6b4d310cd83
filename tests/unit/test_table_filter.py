"""Unit tests for OData filter composition."""

from datetime import datetime, timedelta, timezone

import pytest

from aemcheck.table_filter import (
    AND,
    EQUAL,
    GREATER_OR_EQUAL,
    combine,
    condition,
    diagnostics_filter,
)


class TestCondition:
    def test_string_equality(self):
        assert condition("Host", EQUAL, "vm1") == "Host eq 'vm1'"

    def test_quotes_are_doubled(self):
        assert condition("Host", EQUAL, "o'brien") == "Host eq 'o''brien'"

    def test_datetime_is_utc(self):
        ts = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert condition("Timestamp", GREATER_OR_EQUAL, ts) == (
            "Timestamp ge datetime'2024-05-01T12:00:00.000000Z'"
        )

    def test_unsupported_comparison(self):
        with pytest.raises(ValueError):
            condition("Host", "lt", "vm1")


def test_combine():
    assert combine("a eq 'x'", AND, "b eq 'y'") == "(a eq 'x') and (b eq 'y')"
    with pytest.raises(ValueError):
        combine("a", "xor", "b")


def test_diagnostics_filter():
    since = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert diagnostics_filter("dep", "vm1", since) == (
        "(DeploymentId eq 'dep') and ((Host eq 'vm1') and "
        "(Timestamp ge datetime'2024-01-01T00:00:00.000000Z'))"
    )
