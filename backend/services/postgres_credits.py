"""
PostgresCreditLedger — AI credit balances in Postgres.

Tables (alembic 002):
- credit_accounts: one row per customer, opened on first use
- credit_holds: outstanding reservations, released on settle
- credit_transactions: append-only record of every balance change

reserve() and settle() lock the customer's account row, so concurrent
calls from several workers cannot overspend a balance or a spending limit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

import asyncpg

from backend.services.credits import (
    AutoTopup,
    CreditLedger,
    Reservation,
    check_period,
    format_dollars,
    insufficient_credits,
    limit_reached,
    next_period_reset,
    utcnow,
)

logger = logging.getLogger(__name__)


class PostgresCreditLedger(CreditLedger):
    """Credit ledger backed by credit_accounts, credit_holds and credit_transactions."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        starter_cents: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.pool = pool
        self.starter_cents = starter_cents
        self.clock = clock

    # -- account rows --

    async def _open(self, conn: asyncpg.Connection, customer_id: str) -> None:
        opened = await conn.fetchval(
            """
            INSERT INTO credit_accounts (customer_id, balance_cents)
            VALUES ($1, $2)
            ON CONFLICT (customer_id) DO NOTHING
            RETURNING balance_cents
            """,
            customer_id,
            self.starter_cents,
        )
        if opened is not None and self.starter_cents > 0:
            await self._record(
                conn,
                customer_id,
                "starter",
                self.starter_cents,
                opened,
                f"Starter credits: {format_dollars(self.starter_cents)}",
            )

    async def _lock(self, conn: asyncpg.Connection, customer_id: str) -> asyncpg.Record:
        await self._open(conn, customer_id)
        return await conn.fetchrow(
            "SELECT * FROM credit_accounts WHERE customer_id = $1 FOR UPDATE",
            customer_id,
        )

    async def _record(
        self,
        conn: asyncpg.Connection,
        customer_id: str,
        kind: str,
        amount_cents: int,
        balance_after: int,
        description: str,
        reservation_id: str | None = None,
    ) -> None:
        await conn.execute(
            """
            INSERT INTO credit_transactions
                (customer_id, type, amount_cents, balance_after_cents, description, reservation_id)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            customer_id,
            kind,
            amount_cents,
            balance_after,
            description,
            reservation_id,
        )

    async def _current_usage(self, conn: asyncpg.Connection, account: asyncpg.Record) -> int:
        """Usage in the running period; rolls the period over once it has ended."""
        now = self.clock()
        reset_at = account["period_reset_at"]
        if reset_at is not None and now < reset_at:
            return account["period_usage_cents"]
        await conn.execute(
            """
            UPDATE credit_accounts
            SET period_usage_cents = 0, period_reset_at = $2, updated_at = now()
            WHERE customer_id = $1
            """,
            account["customer_id"],
            next_period_reset(account["spending_limit_period"], now),
        )
        return 0

    # -- billing settings --

    async def add_credits(self, customer_id: str, amount_cents: int) -> int:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._open(conn, customer_id)
                balance = await conn.fetchval(
                    """
                    UPDATE credit_accounts
                    SET balance_cents = balance_cents + $2,
                        total_purchased_cents = total_purchased_cents + $2,
                        updated_at = now()
                    WHERE customer_id = $1
                    RETURNING balance_cents
                    """,
                    customer_id,
                    amount_cents,
                )
                description = f"Credit purchase: {format_dollars(amount_cents)}"
                await self._record(conn, customer_id, "purchase", amount_cents, balance, description)
                return balance

    async def set_spending_limit(self, customer_id: str, limit_cents: int | None, period: str = "monthly") -> None:
        """Cap usage per period; None removes the cap. A new limit starts a fresh period."""
        check_period(period)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._open(conn, customer_id)
                await conn.execute(
                    """
                    UPDATE credit_accounts
                    SET spending_limit_cents = $2, spending_limit_period = $3,
                        period_reset_at = NULL, updated_at = now()
                    WHERE customer_id = $1
                    """,
                    customer_id,
                    limit_cents,
                    period,
                )

    async def set_auto_topup(self, customer_id: str, topup: AutoTopup | None) -> None:
        """None switches auto top-up off."""
        config = topup or AutoTopup()
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._open(conn, customer_id)
                await conn.execute(
                    """
                    UPDATE credit_accounts
                    SET auto_topup_enabled = $2, auto_topup_threshold_cents = $3,
                        auto_topup_amount_cents = $4, updated_at = now()
                    WHERE customer_id = $1
                    """,
                    customer_id,
                    topup is not None,
                    config.threshold_cents,
                    config.amount_cents,
                )

    async def available(self, customer_id: str) -> int:
        """Balance minus outstanding holds."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._open(conn, customer_id)
                return await conn.fetchval(
                    """
                    SELECT a.balance_cents - COALESCE(
                        (SELECT sum(h.amount_cents) FROM credit_holds h WHERE h.customer_id = a.customer_id), 0)
                    FROM credit_accounts a
                    WHERE a.customer_id = $1
                    """,
                    customer_id,
                )

    async def transactions(self, customer_id: str, limit: int = 50) -> list[dict]:
        """Most recent balance changes first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT type, amount_cents, balance_after_cents, description, reservation_id, created_at
                FROM credit_transactions
                WHERE customer_id = $1
                ORDER BY id DESC
                LIMIT $2
                """,
                customer_id,
                limit,
            )
            return [dict(r) for r in rows]

    # -- reserve / settle --

    async def reserve(self, customer_id: str, estimated_cents: int) -> Reservation:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                account = await self._lock(conn, customer_id)

                limit = account["spending_limit_cents"]
                if limit is not None:
                    usage = await self._current_usage(conn, account)
                    if usage + estimated_cents > limit:
                        return limit_reached(customer_id, limit, account["spending_limit_period"])

                held = await conn.fetchval(
                    "SELECT COALESCE(sum(amount_cents), 0) FROM credit_holds WHERE customer_id = $1",
                    customer_id,
                )
                available = account["balance_cents"] - held
                if available < estimated_cents:
                    return insufficient_credits(customer_id, available, estimated_cents)

                reservation = Reservation(customer_id=customer_id, amount_cents=estimated_cents, allowed=True)
                await conn.execute(
                    "INSERT INTO credit_holds (id, customer_id, amount_cents) VALUES ($1, $2, $3)",
                    reservation.id,
                    customer_id,
                    estimated_cents,
                )
                return reservation

    async def settle(self, reservation: Reservation, actual_cents: int) -> None:
        """Release the hold and charge the actual cost. Settling twice is a no-op."""
        if not reservation.allowed or reservation.is_settled:
            return

        customer_id = reservation.customer_id
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._lock(conn, customer_id)
                released = await conn.fetchval(
                    "DELETE FROM credit_holds WHERE id = $1 RETURNING id",
                    reservation.id,
                )
                if released is None:
                    logger.warning("reservation %s was already settled", reservation.id)
                    return
                if actual_cents > 0:
                    await self._charge(conn, reservation, actual_cents)

        reservation.settled_cents = actual_cents

    async def _charge(self, conn: asyncpg.Connection, reservation: Reservation, actual_cents: int) -> None:
        customer_id = reservation.customer_id
        account = await conn.fetchrow(
            """
            UPDATE credit_accounts
            SET balance_cents = balance_cents - $2,
                total_used_cents = total_used_cents + $2,
                period_usage_cents = period_usage_cents + $2,
                updated_at = now()
            WHERE customer_id = $1
            RETURNING balance_cents, auto_topup_enabled, auto_topup_threshold_cents, auto_topup_amount_cents
            """,
            customer_id,
            actual_cents,
        )
        balance = account["balance_cents"]
        if balance < 0:
            logger.warning("customer %s overdrawn to %s cents", customer_id, balance)
        await self._record(
            conn, customer_id, "ai_usage", -actual_cents, balance, f"AI usage ({reservation.id})", reservation.id
        )

        if not account["auto_topup_enabled"] or balance >= account["auto_topup_threshold_cents"]:
            return
        amount = account["auto_topup_amount_cents"]
        balance = await conn.fetchval(
            """
            UPDATE credit_accounts
            SET balance_cents = balance_cents + $2,
                total_purchased_cents = total_purchased_cents + $2,
                updated_at = now()
            WHERE customer_id = $1
            RETURNING balance_cents
            """,
            customer_id,
            amount,
        )
        await self._record(conn, customer_id, "auto_topup", amount, balance, f"Auto top-up: {format_dollars(amount)}")
        logger.info("auto top-up of %s cents for %s", amount, customer_id)
