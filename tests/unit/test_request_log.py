import logging

import pytest

from src.ms_gateway.middleware.request_log import level_for, resolve_request_id


class TestResolveRequestId:
    def test_well_formed_client_id_is_kept(self) -> None:
        assert resolve_request_id("retry-skip-0001") == "retry-skip-0001"

    @pytest.mark.parametrize("supplied", [None, "", "short", "has space in it", "x" * 65])
    def test_bad_client_id_is_replaced(self, supplied) -> None:
        minted = resolve_request_id(supplied)
        assert minted.startswith("req_")
        assert len(minted) == 16


class TestLevelFor:
    @pytest.mark.parametrize(
        "path, status, expected",
        [
            ("/api/prices", 200, logging.INFO),
            ("/api/health", 200, logging.DEBUG),
            ("/api/health", 500, logging.ERROR),
            ("/api/synthetic/trade", 422, logging.WARNING),
            ("/api/account", 500, logging.ERROR),
        ],
    )
    def test_levels(self, path, status, expected) -> None:
        assert level_for(path, status) == expected
