"""
TraceRelay Backend — Error Mapper Unit Tests
==============================================

What:  Tests for map_upstream_error and the error code table.
"""

import pytest

from tracerelay.exceptions import (
    RequestBuildError,
    UpstreamMalformedResponseError,
    UpstreamRejectedError,
    UpstreamUnreachableError,
)
from tracerelay.services.error_mapper import (
    ERROR_CODE_MESSAGES,
    GENERIC_UPSTREAM_MESSAGE,
    MALFORMED_MESSAGE,
    UNREACHABLE_MESSAGE,
    extract_error_code,
    map_upstream_error,
)


class TestRejectedMapping:

    def test_known_code_uses_table_message_and_upstream_status(self):
        payload = {"code": 17701, "message": "Image too large"}
        mapped = map_upstream_error(UpstreamRejectedError(413, payload=payload))
        assert mapped.status_code == 413
        assert mapped.message == ERROR_CODE_MESSAGES[17701]
        assert mapped.details == payload

    def test_unknown_code_falls_back_to_upstream_message(self):
        payload = {"code": 19999, "message": "Something new went wrong"}
        mapped = map_upstream_error(UpstreamRejectedError(400, payload=payload))
        assert mapped.status_code == 400
        assert mapped.message == "Something new went wrong"

    def test_no_code_uses_upstream_message(self):
        mapped = map_upstream_error(UpstreamRejectedError(400, payload={"message": "bad url"}))
        assert mapped.message == "bad url"

    def test_no_code_and_no_message_is_generic(self):
        mapped = map_upstream_error(UpstreamRejectedError(500, payload={"foo": "bar"}))
        assert mapped.message == GENERIC_UPSTREAM_MESSAGE
        assert mapped.details == {"foo": "bar"}

    def test_non_json_body_omits_details(self):
        mapped = map_upstream_error(
            UpstreamRejectedError(502, content=b"<html>Bad Gateway</html>", payload=None)
        )
        assert mapped.status_code == 502
        assert mapped.message == GENERIC_UPSTREAM_MESSAGE
        assert mapped.details is None

    def test_scalar_json_body_omits_details(self):
        mapped = map_upstream_error(UpstreamRejectedError(500, payload="oops"))
        assert mapped.details is None

    def test_numeric_string_code_is_recognized(self):
        mapped = map_upstream_error(UpstreamRejectedError(400, payload={"code": "17722"}))
        assert mapped.message == ERROR_CODE_MESSAGES[17722]

    def test_malformed_success_body(self):
        mapped = map_upstream_error(UpstreamMalformedResponseError(200, content=b"<html>"))
        assert mapped.status_code == 502
        assert mapped.message == MALFORMED_MESSAGE
        assert mapped.details is None


class TestTransportMapping:

    def test_unreachable_is_500_generic(self):
        mapped = map_upstream_error(UpstreamUnreachableError())
        assert mapped == (500, UNREACHABLE_MESSAGE, None)

    def test_request_build_error_echoes_text(self):
        mapped = map_upstream_error(RequestBuildError("invalid upstream URL"))
        assert mapped.status_code == 500
        assert mapped.message == "Request configuration error: invalid upstream URL"
        assert mapped.details is None


class TestErrorCodeTable:

    def test_documented_codes_present(self):
        assert set(ERROR_CODE_MESSAGES) == {
            17701, 17702, 17703, 17704, 17705, 17706,
            17707, 17708, 17722, 17728, 17731,
        }

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            ERROR_CODE_MESSAGES[17701] = "changed"

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"code": 17701}, 17701),
            ({"code": " 17705 "}, 17705),
            ({"code": True}, None),
            ({"code": "abc"}, None),
            ({"code": None}, None),
            ({}, None),
            ([{"code": 17701}], None),
            (None, None),
        ],
    )
    def test_extract_error_code(self, payload, expected):
        assert extract_error_code(payload) == expected
