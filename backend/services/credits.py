"""
AI credits — the billing gate around coach calls.

Callers reserve an estimated cost before an AI call and settle the actual
cost afterwards. A denied reservation means the AI call must not happen.
Amounts are integer cents.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from engine.builder.errors import BuilderError
from engine.builder.types import GateDecision, generate_id, now_iso

logger = logging.getLogger(__name__)


class CreditsDenied(BuilderError):
    """A reservation was refused; the AI call must not be made."""

    code = "CREDITS_DENIED"


# ---------------------------------------------------------------------------
# Model pricing (per 1K tokens, in cents)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelPricing:
    provider: str
    model: str
    input_per_1k: float
    output_per_1k: float
    margin: float  # multiplier, 1.3 = 30% markup


MODEL_PRICING: dict[str, ModelPricing] = {
    p.model: p
    for p in (
        ModelPricing("anthropic", "claude-sonnet-4-20250514", 0.30, 1.50, 1.3),
        ModelPricing("anthropic", "claude-3-5-haiku-20241022", 0.08, 0.40, 1.3),
        ModelPricing("openai", "gpt-4o", 0.25, 1.0, 1.3),
        ModelPricing("openai", "gpt-4o-mini", 0.015, 0.06, 1.3),
        ModelPricing("openai", "gpt-4.1", 0.20, 0.80, 1.3),
        ModelPricing("openai", "gpt-4.1-mini", 0.04, 0.16, 1.3),
        ModelPricing("openai", "gpt-4.1-nano", 0.01, 0.04, 1.3),
    )
}

# Unknown models are billed at this rate
DEFAULT_PRICING = ModelPricing("unknown", "default", 0.10, 0.30, 1.3)


@dataclass(frozen=True)
class CostBreakdown:
    input_cost_cents: int
    output_cost_cents: int
    total_cost_cents: int
    margin_cents: int
    base_cost_cents: int


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> CostBreakdown:
    """Cost of a call, rounded up to whole cents (at least 1 cent if any tokens were used)."""
    pricing = MODEL_PRICING.get(model, DEFAULT_PRICING)

    base_input = input_tokens / 1000 * pricing.input_per_1k
    base_output = output_tokens / 1000 * pricing.output_per_1k
    base = base_input + base_output
    total = base * pricing.margin

    input_cents = math.ceil(base_input * pricing.margin)
    output_cents = math.ceil(base_output * pricing.margin)
    floor = 1 if input_tokens + output_tokens > 0 else 0
    return CostBreakdown(
        input_cost_cents=input_cents,
        output_cost_cents=output_cents,
        total_cost_cents=max(input_cents + output_cents, floor),
        margin_cents=math.ceil(total - base),
        base_cost_cents=math.ceil(base),
    )


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> int:
    """Total cents for a call of this size."""
    return calculate_cost(model, input_tokens, output_tokens).total_cost_cents


def cost_from_usage(model: str, usage: dict[str, Any] | None) -> int:
    """Actual cents for a provider usage record; 0 when there was no usage."""
    if not usage:
        return 0
    return estimate_cost(model, int(usage.get("input_tokens", 0)), int(usage.get("output_tokens", 0)))


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass
class Reservation:
    """A hold on a customer's credits for one AI call."""

    customer_id: str
    amount_cents: int
    allowed: bool
    reason: str | None = None
    id: str = field(default_factory=lambda: generate_id("rsv"))
    settled_cents: int | None = None

    @property
    def decision(self) -> GateDecision:
        return GateDecision(allowed=self.allowed, reason=self.reason)

    @property
    def is_settled(self) -> bool:
        return self.settled_cents is not None


def format_dollars(cents: int) -> str:
    return f"${cents / 100:.2f}"


def utcnow() -> datetime:
    return datetime.now(UTC)


SPENDING_PERIODS = ("daily", "monthly")


def check_period(period: str) -> str:
    if period not in SPENDING_PERIODS:
        raise ValueError(f"spending period must be one of {', '.join(SPENDING_PERIODS)} (got '{period}')")
    return period


def next_period_reset(period: str, now: datetime) -> datetime:
    """Start of the next day or calendar month after `now`, in now's timezone."""
    if period == "daily":
        return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    if now.month == 12:
        return now.replace(year=now.year + 1, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(month=now.month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


@dataclass(frozen=True)
class AutoTopup:
    """Add amount_cents whenever a charge leaves the balance below threshold_cents."""

    threshold_cents: int = 100
    amount_cents: int = 500


def limit_reached(customer_id: str, limit_cents: int, period: str) -> Reservation:
    return Reservation(
        customer_id=customer_id,
        amount_cents=0,
        allowed=False,
        reason=f"Spending limit reached ({format_dollars(limit_cents)} {period}). Adjust in Billing settings.",
    )


def insufficient_credits(customer_id: str, available_cents: int, estimated_cents: int) -> Reservation:
    return Reservation(
        customer_id=customer_id,
        amount_cents=0,
        allowed=False,
        reason=(
            f"Insufficient credits. Balance: {format_dollars(available_cents)}, "
            f"estimated cost: {format_dollars(estimated_cents)}. Add credits in Billing."
        ),
    )


class CreditLedger:
    """
    Abstract billing collaborator.
    reserve() before the AI call, settle() after it (with 0 when it failed).
    """

    async def reserve(self, customer_id: str, estimated_cents: int) -> Reservation:
        raise NotImplementedError

    async def settle(self, reservation: Reservation, actual_cents: int) -> None:
        raise NotImplementedError


class MemoryCreditLedger(CreditLedger):
    """In-memory ledger for tests and local development."""

    def __init__(
        self,
        balances: dict[str, int] | None = None,
        spending_limits: dict[str, int] | None = None,
        starter_cents: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.balances: dict[str, int] = dict(balances or {})
        self.spending_limits: dict[str, int] = dict(spending_limits or {})
        self.spending_periods: dict[str, str] = {}
        self.period_usage: dict[str, int] = {}
        self.period_resets: dict[str, datetime] = {}
        self.auto_topups: dict[str, AutoTopup] = {}
        self.holds: dict[str, Reservation] = {}
        self.transactions: list[dict[str, Any]] = []
        self.starter_cents = starter_cents
        self.clock = clock

    def _open(self, customer_id: str) -> None:
        """Accounts open on first use with the starter balance."""
        if customer_id in self.balances:
            return
        self.balances[customer_id] = self.starter_cents
        if self.starter_cents > 0:
            description = f"Starter credits: {format_dollars(self.starter_cents)}"
            self._record(customer_id, "starter", self.starter_cents, description)

    def add_credits(self, customer_id: str, amount_cents: int) -> int:
        self._open(customer_id)
        self.balances[customer_id] += amount_cents
        self._record(customer_id, "purchase", amount_cents, f"Credit purchase: {format_dollars(amount_cents)}")
        return self.balances[customer_id]

    def set_spending_limit(self, customer_id: str, limit_cents: int | None, period: str = "monthly") -> None:
        """Cap usage per period; None removes the cap. A new limit starts a fresh period."""
        check_period(period)
        if limit_cents is None:
            self.spending_limits.pop(customer_id, None)
        else:
            self.spending_limits[customer_id] = limit_cents
        self.spending_periods[customer_id] = period
        self.period_resets.pop(customer_id, None)

    def set_auto_topup(self, customer_id: str, topup: AutoTopup | None) -> None:
        if topup is None:
            self.auto_topups.pop(customer_id, None)
        else:
            self.auto_topups[customer_id] = topup

    def available(self, customer_id: str) -> int:
        """Balance minus outstanding holds."""
        self._open(customer_id)
        held = sum(r.amount_cents for r in self.holds.values() if r.customer_id == customer_id)
        return self.balances[customer_id] - held

    def _current_usage(self, customer_id: str) -> int:
        """Usage in the running period, starting a new period when the last one ended."""
        now = self.clock()
        reset_at = self.period_resets.get(customer_id)
        if reset_at is None or now >= reset_at:
            period = self.spending_periods.get(customer_id, "monthly")
            self.period_usage[customer_id] = 0
            self.period_resets[customer_id] = next_period_reset(period, now)
        return self.period_usage.get(customer_id, 0)

    async def reserve(self, customer_id: str, estimated_cents: int) -> Reservation:
        limit = self.spending_limits.get(customer_id)
        if limit is not None and self._current_usage(customer_id) + estimated_cents > limit:
            period = self.spending_periods.get(customer_id, "monthly")
            return limit_reached(customer_id, limit, period)

        available = self.available(customer_id)
        if available < estimated_cents:
            return insufficient_credits(customer_id, available, estimated_cents)

        reservation = Reservation(customer_id=customer_id, amount_cents=estimated_cents, allowed=True)
        self.holds[reservation.id] = reservation
        return reservation

    async def settle(self, reservation: Reservation, actual_cents: int) -> None:
        """Release the hold and charge the actual cost. Settling twice is a no-op."""
        if not reservation.allowed or reservation.is_settled:
            return
        self.holds.pop(reservation.id, None)
        reservation.settled_cents = actual_cents
        if actual_cents <= 0:
            return

        customer_id = reservation.customer_id
        balance = self.balances.get(customer_id, 0)
        if actual_cents > balance:
            logger.warning(
                "customer %s charged %s with only %s available", customer_id, actual_cents, balance
            )
        self.balances[customer_id] = balance - actual_cents
        self.period_usage[customer_id] = self.period_usage.get(customer_id, 0) + actual_cents
        self._record(customer_id, "ai_usage", -actual_cents, f"AI usage ({reservation.id})")

        topup = self.auto_topups.get(customer_id)
        if topup is not None and self.balances[customer_id] < topup.threshold_cents:
            self.balances[customer_id] += topup.amount_cents
            description = f"Auto top-up: {format_dollars(topup.amount_cents)}"
            self._record(customer_id, "auto_topup", topup.amount_cents, description)
            logger.info("auto top-up of %s cents for %s", topup.amount_cents, customer_id)

    def _record(self, customer_id: str, kind: str, amount_cents: int, description: str) -> None:
        self.transactions.append(
            {
                "customer_id": customer_id,
                "type": kind,
                "amount_cents": amount_cents,
                "balance_after_cents": self.balances.get(customer_id, 0),
                "description": description,
                "created_at": now_iso(),
            }
        )
