"""Trade submission: local pre-checks, backend call, reconciliation."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from .api import INVALID_RESPONSE, BackendClient
from .errors import FrameError, RequestError, TradeValidationError
from .models import Notice, TradeRequest, TradeSide, TradeTicket
from .store import PortfolioReconciler

log = logging.getLogger(__name__)

MISSING_INPUT = "Please select a cryptocurrency and enter a valid amount."
MISSING_PRICE = "Price information not available. Please try again."
INSUFFICIENT_FUNDS = "Insufficient funds for this purchase."


class TradeState(Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    APPLIED = "applied"
    REJECTED = "rejected"


class TradeExecutor:
    """Idle -> Submitting -> Applied | Rejected -> Idle.

    Submissions are not serialized against each other; the backend's own
    balance check is authoritative.
    """

    def __init__(
        self,
        api: BackendClient,
        reconciler: PortfolioReconciler,
        notify: Callable[[Notice], None] | None = None,
    ) -> None:
        self._api = api
        self._reconciler = reconciler
        self._notify = notify
        self._in_flight = 0
        self.last_outcome: TradeState | None = None

    @property
    def state(self) -> TradeState:
        return TradeState.SUBMITTING if self._in_flight else TradeState.IDLE

    def validate(self, side: TradeSide, ticket: TradeTicket) -> TradeRequest:
        symbol = (ticket.symbol or "").strip()
        amount = ticket.amount
        if not symbol or amount is None or not amount > 0:
            raise TradeValidationError(MISSING_INPUT)
        price = self._reconciler.prices.price(symbol)
        if not price:
            raise TradeValidationError(MISSING_PRICE)
        request = TradeRequest(side=side, symbol=symbol, amount=float(amount), price=price)
        if side is TradeSide.BUY and request.value > self._reconciler.state.balance:
            raise TradeValidationError(INSUFFICIENT_FUNDS)
        return request

    async def submit(self, side: TradeSide, ticket: TradeTicket) -> bool:
        try:
            request = self.validate(side, ticket)
        except TradeValidationError as exc:
            log.info("trade rejected locally: %s", exc)
            self.last_outcome = TradeState.REJECTED
            self._emit(str(exc))
            return False

        balance_before = self._reconciler.state.balance
        self._in_flight += 1
        try:
            result = await self._api.trade(request)
            self._apply(request, result, balance_before)
        except RequestError as exc:
            log.error("trade %s %s failed: %s", request.side.value, request.symbol, exc.message)
            self.last_outcome = TradeState.REJECTED
            self._emit(exc.message)
            return False
        except FrameError as exc:
            log.error("trade response unusable: %s", exc)
            self.last_outcome = TradeState.REJECTED
            self._emit(INVALID_RESPONSE)
            return False
        finally:
            self._in_flight -= 1

        log.info(
            "trade applied: %s %.6f %s @ %.2f",
            request.side.value,
            request.amount,
            request.symbol,
            request.price,
        )
        self.last_outcome = TradeState.APPLIED
        ticket.clear()
        return True

    def _apply(self, request: TradeRequest, result: dict, balance_before: float) -> None:
        payload = dict(result)
        if payload.get("balance") is None:
            # No authoritative balance in the reply: estimate from the fill.
            sign = -1.0 if request.side is TradeSide.BUY else 1.0
            payload["balance"] = balance_before + sign * request.value
        self._reconciler.apply_account_snapshot(payload)

    def _emit(self, message: str) -> None:
        if self._notify:
            self._notify(Notice(message, "error"))
