"""
VoiceBrief Backend: Request ID Resolution Tests
===============================================
"""

import pytest

from voicebrief.middleware.request_id import resolve_request_id


class TestResolveRequestId:

    @pytest.mark.parametrize("value", ["abc12345", "req-2024.01_15", "A" * 64])
    def test_safe_client_ids_are_kept(self, value):
        assert resolve_request_id(value) == value

    @pytest.mark.parametrize(
        "value",
        [None, "", "has space", "line\nbreak", "abc\n", "<b>x</b>", "A" * 65],
    )
    def test_unsafe_client_ids_are_replaced(self, value):
        rid = resolve_request_id(value)
        assert rid != value
        assert len(rid) == 8
        assert rid.isalnum()

    def test_generated_ids_differ(self):
        assert resolve_request_id(None) != resolve_request_id(None)
