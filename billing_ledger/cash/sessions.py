"""
Cash Session Manager

Drawer accountability for the point of sale.

DESIGN PRINCIPLES:
- One OPEN session at a time (unless configured otherwise)
- Sessions are immutable once closed
- Manual movements are append-only
- The expected balance is a derived read; it is stored only at open
  (equal to the float) and at close (the final reconciliation)
"""

from decimal import Decimal
from typing import Callable, Iterable, Optional

import structlog

from billing_ledger.cash.reconciliation import cash_sales, compute_expected, movement_totals
from billing_ledger.exceptions import InvalidOperation, InvalidState
from billing_ledger.models.cash import (
    CashMovement,
    CashMovementType,
    CashSession,
    CashSessionStatus,
    CashSessionSummary,
)
from billing_ledger.models.document import Document
from billing_ledger.repository import Repository
from billing_ledger.time_utils import utcnow


logger = structlog.get_logger(__name__)


DEFAULT_CASH_METHODS = ("Efectivo", "Cash")


class CashSessionManager:
    """
    Opens, reconciles and closes cash sessions.

    Reads the same document repository the ledger writes, so cash sales
    made while a session is open show up in its expected balance
    immediately.
    """

    def __init__(
        self,
        sessions: Repository[CashSession],
        movements: Repository[CashMovement],
        documents: Repository[Document],
        cash_methods: Iterable[str] = DEFAULT_CASH_METHODS,
        allow_concurrent_sessions: bool = False,
        clock: Callable = utcnow,
    ):
        self._sessions = sessions
        self._movements = movements
        self._documents = documents
        self._cash_methods = [m.strip().lower() for m in cash_methods]
        self._allow_concurrent = allow_concurrent_sessions
        self._clock = clock

    def get(self, session_id: str) -> Optional[CashSession]:
        return self._sessions.get(session_id)

    def active_session(self) -> Optional[CashSession]:
        """The most recently opened OPEN session, if any."""
        open_sessions = self._sessions.list(lambda s: s.is_open)
        if not open_sessions:
            return None
        return max(open_sessions, key=lambda s: s.opened_at)

    def movements_for(self, session_id: str) -> list[CashMovement]:
        return self._movements.list(lambda m: m.session_id == session_id)

    def _require(self, session_id: str) -> CashSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise InvalidOperation(f"Cash session not found: {session_id}")
        return session

    def _require_open(self, session_id: str) -> CashSession:
        session = self._require(session_id)
        if not session.is_open:
            raise InvalidState(f"Cash session {session_id} is {session.status.value}")
        return session

    def open(
        self,
        opening_balance: Decimal,
        user_id: str,
        user_name: Optional[str] = None,
    ) -> CashSession:
        """
        Open a new session with a starting float.

        Raises:
            InvalidOperation: negative opening balance
            InvalidState: another session is already OPEN
        """
        opening_balance = Decimal(opening_balance)
        if opening_balance < 0:
            raise InvalidOperation(
                f"Opening balance cannot be negative, got {opening_balance}"
            )
        if not self._allow_concurrent:
            current = self.active_session()
            if current is not None:
                raise InvalidState(
                    f"Cash session {current.id} is already open"
                )

        session = CashSession(
            user_id=user_id,
            user_name=user_name,
            opened_at=self._clock(),
            opening_balance=opening_balance,
            expected_balance=opening_balance,
            status=CashSessionStatus.OPEN,
        )
        self._sessions.put(session)

        logger.info(
            "cash_session_opened",
            session_id=session.id,
            user_id=user_id,
            opening_balance=str(opening_balance),
        )
        return session

    def record_movement(
        self,
        session_id: str,
        type: CashMovementType,
        amount: Decimal,
        description: str = "",
    ) -> CashMovement:
        """
        Append a manual cash IN/OUT to an OPEN session.

        The session's stored expected balance is not touched.
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidOperation(f"Movement amount must be positive, got {amount}")
        self._require_open(session_id)

        movement = CashMovement(
            session_id=session_id,
            type=CashMovementType(type),
            amount=amount,
            description=description,
            date=self._clock(),
        )
        self._movements.put(movement)

        logger.info(
            "cash_movement_recorded",
            session_id=session_id,
            type=movement.type.value,
            amount=str(amount),
        )
        return movement

    def expected_balance(self, session_id: str) -> Decimal:
        """
        Live expected balance.

        For a CLOSED session this is the value frozen at close.
        """
        session = self._require(session_id)
        if not session.is_open:
            return session.expected_balance
        return compute_expected(
            session,
            self._movements,
            self._documents,
            self._cash_methods,
        )

    def close(self, session_id: str, actual_balance: Decimal) -> CashSession:
        """
        Count the drawer and close the session.

        The only write path for expected/actual balance, difference and
        closed_at.
        """
        actual_balance = Decimal(actual_balance)
        session = self._require_open(session_id)

        expected = compute_expected(
            session,
            self._movements,
            self._documents,
            self._cash_methods,
        )
        closed = session.model_copy(
            update={
                "expected_balance": expected,
                "actual_balance": actual_balance,
                "difference": actual_balance - expected,
                "status": CashSessionStatus.CLOSED,
                "closed_at": self._clock(),
            }
        )
        self._sessions.put(closed)

        logger.info(
            "cash_session_closed",
            session_id=session_id,
            expected_balance=str(expected),
            actual_balance=str(actual_balance),
            difference=str(closed.difference),
        )
        return closed

    def summary(self, session_id: str) -> CashSessionSummary:
        session = self._require(session_id)
        movements = self.movements_for(session_id)
        total_in, total_out = movement_totals(session, movements)
        expected = self.expected_balance(session_id)
        if session.is_open:
            sales = cash_sales(session, self._documents, self._cash_methods)
        else:
            # Closed figures are frozen; documents may have changed since
            sales = expected - session.opening_balance - total_in + total_out
        return CashSessionSummary(
            session_id=session.id,
            status=session.status,
            opening_balance=session.opening_balance,
            cash_sales=sales,
            movements_in=total_in,
            movements_out=total_out,
            movement_count=len(movements),
            expected_balance=expected,
            actual_balance=session.actual_balance,
            difference=session.difference,
        )
