"""
Tests for the destination URL policy and the error payloads.
"""

import pytest

from golinks.core.exceptions import (
    AuthenticationFailedError,
    InvalidDestinationURLError,
    LinkNotFoundError,
    RateLimitExceededError,
    ServiceError,
)
from golinks.core.validators import validate_destination_url


class TestValidateDestinationURL:

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com",
            "https://example.com/docs?page=2#intro",
            "HTTPS://Example.com/Path",
            "https://172.17.0.1/",
            "https://8.8.8.8/dns",
        ],
    )
    def test_accepts_public_https(self, url):
        assert validate_destination_url(url) == url

    @pytest.mark.parametrize(
        "url,error_code",
        [
            ("http://example.com", "INSECURE_PROTOCOL"),
            ("ftp://example.com/file", "INSECURE_PROTOCOL"),
            ("data:text/html,hi", "INSECURE_PROTOCOL"),
            ("no-scheme.example.com", "MALFORMED_URL"),
            ("https://example.com:99999/", "MALFORMED_URL"),
            ("https:///path-only", "MISSING_HOSTNAME"),
            ("https://localhost:8443/", "PRIVATE_NETWORK_BLOCKED"),
            ("https://127.0.0.1/", "PRIVATE_NETWORK_BLOCKED"),
            ("https://[::1]/", "PRIVATE_NETWORK_BLOCKED"),
            ("https://10.1.2.3/", "PRIVATE_NETWORK_BLOCKED"),
            ("https://172.16.5.4/", "PRIVATE_NETWORK_BLOCKED"),
            ("https://169.254.169.254/latest/meta-data", "PRIVATE_NETWORK_BLOCKED"),
        ],
    )
    def test_rejects(self, url, error_code):
        with pytest.raises(InvalidDestinationURLError) as exc_info:
            validate_destination_url(url)

        assert exc_info.value.error_code == error_code
        assert exc_info.value.status_code == 400
        assert exc_info.value.to_dict()["providedUrl"] == url


class TestErrorPayloads:

    def test_link_not_found_by_id(self):
        body = LinkNotFoundError(link_id=7).to_dict()
        assert body["errorCode"] == "LINK_NOT_FOUND"
        assert body["linkId"] == 7
        assert "hint" in body

    def test_link_not_found_by_code(self):
        body = LinkNotFoundError(short_code="docs").to_dict()
        assert body == {"error": "Short link not found: /docs", "errorCode": "LINK_NOT_FOUND"}

    def test_authentication_error_code_override(self):
        error = AuthenticationFailedError("Missing key", error_code="MISSING_ADMIN_KEY")
        assert error.status_code == 401
        assert error.to_dict()["errorCode"] == "MISSING_ADMIN_KEY"
        # The class default is untouched
        assert AuthenticationFailedError.error_code == "INVALID_ADMIN_KEY"

    @pytest.mark.parametrize("seconds,minutes", [(3600, 60), (1799, 30), (1, 1), (60, 1), (61, 2)])
    def test_retry_after_minutes_rounds_up(self, seconds, minutes):
        assert RateLimitExceededError(seconds).retry_after_minutes == minutes

    def test_service_error_keeps_cause_out_of_payload(self):
        cause = RuntimeError("disk I/O error")
        error = ServiceError("Failed to fetch links", original_error=cause, error_code="DB_QUERY_FAILED")

        body = error.to_dict()

        assert error.original_error is cause
        assert body["error"] == "Database error: Failed to fetch links"
        assert body["errorCode"] == "DB_QUERY_FAILED"
        assert "disk I/O error" not in str(body)
