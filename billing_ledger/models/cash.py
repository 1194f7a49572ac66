"""
Cash Register Models

A CashSession is the period between opening a drawer with a float and
counting it at close. Its expected balance is DERIVED from the opening
float, cash sales and the session's manual movements; the stored field
is written only at open and at close.

DESIGN DECISION: Closed sessions are immutable and never deleted.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from billing_ledger.time_utils import new_id, to_utc_naive, utcnow


class CashSessionStatus(str, Enum):
    """Cash session lifecycle state."""
    OPEN = "open"
    CLOSED = "closed"


class CashMovementType(str, Enum):
    """Direction of a manual cash movement."""
    IN = "in"
    OUT = "out"


class CashSession(BaseModel):
    """
    One drawer session.

    actual_balance, difference and closed_at stay empty until close.
    """

    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., min_length=1)
    user_name: Optional[str] = None
    opened_at: datetime = Field(default_factory=utcnow)
    opening_balance: Decimal = Field(..., ge=0)
    expected_balance: Decimal
    actual_balance: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    closed_at: Optional[datetime] = None
    status: CashSessionStatus = CashSessionStatus.OPEN

    @field_validator('opened_at', 'closed_at')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v) if v else v

    @property
    def is_open(self) -> bool:
        return self.status == CashSessionStatus.OPEN


class CashMovement(BaseModel):
    """
    A manual cash IN/OUT during a session. Append-only.

    The amount is checked by the session manager (InvalidOperation), not
    by the schema, so bad input never reaches the session.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    session_id: str
    type: CashMovementType
    amount: Decimal
    description: str = Field(default="", max_length=300)
    date: datetime = Field(default_factory=utcnow)

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_utc_naive(v)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == CashMovementType.IN else -self.amount


class CashSessionSummary(BaseModel):
    """
    Reconciliation breakdown of a session.

    Used by the session report consumer and for on-screen totals.
    """

    session_id: str
    status: CashSessionStatus
    opening_balance: Decimal
    cash_sales: Decimal
    movements_in: Decimal
    movements_out: Decimal
    movement_count: int = Field(ge=0)
    expected_balance: Decimal
    actual_balance: Optional[Decimal] = None
    difference: Optional[Decimal] = None
