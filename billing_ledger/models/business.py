"""
Business Records

Clients, expenses and the tenant's business settings. These are plain
records the ledger references or hands to consumers; it never derives
anything from them except the dashboard summary.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from billing_ledger.models.document import Document
from billing_ledger.models.inventory import Product
from billing_ledger.time_utils import new_id, utcnow


BACKUP_FORMAT_VERSION = "1.0"


class Client(BaseModel):
    """A customer referenced by documents through client_id."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=50)
    tax_id: str = Field(default="", max_length=50)
    address: str = Field(default="", max_length=300)
    city: str = Field(default="", max_length=100)
    municipality: str = Field(default="", max_length=100)
    zip_code: str = Field(default="", max_length=20)


class Expense(BaseModel):
    """A business expense. Feeds the dashboard's net profit."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    date: date
    description: str = Field(..., min_length=1, max_length=300)
    amount: Decimal = Field(..., ge=0)
    category: str = Field(default="General", max_length=100)


class BusinessSettings(BaseModel):
    """
    Tenant settings.

    Stored in the settings collection with the tenant scope as its id.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    currency: str = Field(default="COP", min_length=3, max_length=3)
    company_name: str = Field(default="", max_length=200)
    company_id: str = Field(default="", max_length=50)
    company_address: str = Field(default="", max_length=300)
    default_tax_rate: Decimal = Field(default=Decimal("19"), ge=0, le=100)
    logo: Optional[str] = None


class BackupData(BaseModel):
    """Full export of a tenant's records."""

    documents: list[Document] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    clients: list[Client] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    settings: BusinessSettings = Field(default_factory=BusinessSettings)
    version: str = BACKUP_FORMAT_VERSION
    export_date: datetime = Field(default_factory=utcnow)


class DashboardSummary(BaseModel):
    """
    Headline figures for the tenant.

    collected counts money actually received on revenue documents;
    pending is what is still owed on revenue documents not PAID/REJECTED.
    """

    collected: Decimal
    expenses: Decimal
    net_profit: Decimal
    pending: Decimal
    revenue_documents: int = Field(ge=0)
    open_documents: int = Field(ge=0)
