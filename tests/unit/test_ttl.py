"""
Unit tests for ttl resolution.

Precedence: fixed ttl > cookie maxAge (ms, floored to seconds) > one day.
"""

from datetime import timedelta

import pytest

from errors.exceptions import InvalidSessionDataError
from session.ttl import DEFAULT_SESSION_TTL, cookie_max_age_seconds, resolve_ttl


class TestResolveTtl:
    """Tests for resolve_ttl()."""

    def test_default_is_one_day(self):
        assert resolve_ttl({}) == 86400
        assert DEFAULT_SESSION_TTL == timedelta(days=1)

    def test_max_age_is_converted_to_seconds(self):
        assert resolve_ttl({"cookie": {"maxAge": 5000}}) == 5

    def test_max_age_is_floored(self):
        assert resolve_ttl({"cookie": {"maxAge": 5999}}) == 5
        assert resolve_ttl({"cookie": {"maxAge": 1500.7}}) == 1

    def test_fixed_ttl_wins_over_cookie(self):
        data = {"cookie": {"maxAge": 5000}}

        assert resolve_ttl(data, timedelta(minutes=10)) == 600

    def test_cookie_without_max_age_uses_default(self):
        assert resolve_ttl({"cookie": {"path": "/"}}) == 86400
        assert resolve_ttl({"cookie": {"maxAge": None}}) == 86400

    def test_null_cookie_uses_default(self):
        assert resolve_ttl({"cookie": None}) == 86400

    def test_fixed_ttl_skips_cookie_validation(self):
        assert resolve_ttl({"cookie": "garbage"}, timedelta(seconds=30)) == 30

    def test_zero_fixed_ttl_is_still_fixed(self):
        assert resolve_ttl({"cookie": {"maxAge": 5000}}, timedelta(0)) == 0

    def test_sub_second_fixed_ttl_rounds_up(self):
        assert resolve_ttl({}, timedelta(milliseconds=500)) == 1
        assert resolve_ttl({}, timedelta(seconds=1, milliseconds=1)) == 2


class TestMalformedCookie:
    """Malformed cookie metadata raises before any store command."""

    @pytest.mark.parametrize("cookie", ["expires-soon", 42, ["maxAge", 5000]])
    def test_cookie_must_be_a_mapping(self, cookie):
        with pytest.raises(InvalidSessionDataError):
            resolve_ttl({"cookie": cookie})

    @pytest.mark.parametrize("max_age", ["5000", True, float("inf"), {"ms": 1}])
    def test_max_age_must_be_a_finite_number(self, max_age):
        with pytest.raises(InvalidSessionDataError):
            cookie_max_age_seconds({"cookie": {"maxAge": max_age}})

    def test_absent_cookie_returns_none(self):
        assert cookie_max_age_seconds({"user": 1}) is None
