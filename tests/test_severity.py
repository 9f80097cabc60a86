"""
Tests for status-code severity classification and status messages.
"""

from __future__ import annotations

import pytest

from reqlog.severity import Severity, classify_status, status_message


class TestClassifyStatus:
    def test_exactly_200_is_info(self) -> None:
        assert classify_status(200) is Severity.INFO

    @pytest.mark.parametrize("status", [100, 101, 201, 204, 299, 301, 302, 304, 399])
    def test_other_non_error_codes_are_debug(self, status: int) -> None:
        assert classify_status(status) is Severity.DEBUG

    @pytest.mark.parametrize("status", [400, 401, 404, 418, 499])
    def test_client_errors_are_warn(self, status: int) -> None:
        assert classify_status(status) is Severity.WARN

    @pytest.mark.parametrize("status", [500, 502, 503, 599, 600])
    def test_server_errors_are_error(self, status: int) -> None:
        assert classify_status(status) is Severity.ERROR


class TestSeverity:
    def test_method_names(self) -> None:
        assert Severity.DEBUG.method_name == "debug"
        assert Severity.INFO.method_name == "info"
        assert Severity.WARN.method_name == "warning"
        assert Severity.ERROR.method_name == "error"

    def test_values(self) -> None:
        assert [s.value for s in Severity] == ["debug", "info", "warn", "error"]


class TestStatusMessage:
    def test_known_codes(self) -> None:
        assert status_message(200) == "OK"
        assert status_message(404) == "Not Found"
        assert status_message(500) == "Internal Server Error"

    def test_unknown_code_is_empty(self) -> None:
        assert status_message(599) == ""
