"""Tests for ss_common.errors and ss_common.response."""

import json
from decimal import Decimal
from types import SimpleNamespace

from pydantic import BaseModel

from src.ss_common.errors import (
    AppError,
    InsufficientBalanceError,
    InsufficientHoldingError,
    PriceBoundExceededError,
    SelfTradeError,
    ServiceUnavailableError,
    SlotLostError,
    ValuationNotFoundError,
)
from src.ss_common.response import error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_insufficient_balance(self) -> None:
        err = InsufficientBalanceError(required="65.00", available="30.00")
        assert err.code == 2001
        assert err.http_status == 422
        assert "65.00" in err.message
        assert "30.00" in err.message

    def test_valuation_not_found(self) -> None:
        err = ValuationNotFoundError("g1:u1")
        assert err.code == 3001
        assert err.http_status == 404

    def test_price_bound(self) -> None:
        err = PriceBoundExceededError("10.35", "10.00")
        assert err.code == 4001
        assert err.http_status == 409

    def test_self_trade(self) -> None:
        err = SelfTradeError()
        assert err.code == 4003
        assert err.http_status == 422

    def test_insufficient_holding(self) -> None:
        err = InsufficientHoldingError(requested=3, owned=2)
        assert err.code == 5001
        assert "owned 2" in err.message

    def test_slot_lost(self) -> None:
        err = SlotLostError(2)
        assert err.code == 6001
        assert "2" in err.message

    def test_service_unavailable(self) -> None:
        err = ServiceUnavailableError()
        assert err.code == 9003
        assert err.http_status == 503


class _Priced(BaseModel):
    price: Decimal


def _request(request_id: str | None = "req_abc123") -> SimpleNamespace:
    return SimpleNamespace(state=SimpleNamespace(request_id=request_id))


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response(_request(), {"verdict": "ACCEPT"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"verdict": "ACCEPT"}

    def test_success_carries_request_id_from_state(self) -> None:
        resp = success_response(_request("req_fromstate"), None)
        assert resp.request_id == "req_fromstate"

    def test_request_id_generated_without_request(self) -> None:
        resp = success_response(None, {"ok": True})
        assert resp.request_id.startswith("req_")

    def test_model_payload_dumped_as_json(self) -> None:
        resp = success_response(_request(), _Priced(price=Decimal("10.35")))
        assert resp.data == {"price": "10.35"}

    def test_error(self) -> None:
        resp = error_response(_request("req_err"), 2001, "Insufficient funds", 422)
        assert resp.status_code == 422
        body = json.loads(resp.body)
        assert body["code"] == 2001
        assert body["data"] is None
        assert body["request_id"] == "req_err"

    def test_serialization(self) -> None:
        d = success_response(_request(), {"price": "10.35"}).model_dump()
        assert {"code", "message", "data", "timestamp", "request_id"} <= set(d)
