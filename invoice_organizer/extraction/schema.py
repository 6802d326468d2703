"""Invoice field models for structured extraction.

The taxonomy is the four reimbursable expense categories of a travel claim.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class InvoiceType(str, Enum):
    """Expense category of a receipt."""

    INTERCITY_TRANSPORT = "intercity_transport"  # train / flight tickets
    INTRACITY_TRANSPORT = "intracity_transport"  # taxi, ride hailing, metro
    ACCOMMODATION = "accommodation"
    REGISTRATION_FEE = "registration_fee"  # conference / contest fees


INVOICE_TYPE_LABELS: dict[InvoiceType, str] = {
    InvoiceType.INTERCITY_TRANSPORT: "城市间交通",
    InvoiceType.INTRACITY_TRANSPORT: "城市内交通",
    InvoiceType.ACCOMMODATION: "住宿",
    InvoiceType.REGISTRATION_FEE: "报名费",
}


class InvoiceFields(BaseModel):
    """Structured fields recovered from one model response.

    ``None`` stands for "unknown" on every field.
    """

    type: InvoiceType | None = Field(None, description="Expense category")
    amount: Decimal | None = Field(None, description="Amount without currency symbol")
    date: str | None = Field(None, description="Invoice date, YYYY-MM-DD as returned")
    description: str | None = Field(None, description="Short human description")
    raw_text: str | None = Field(None, description="Full model response kept for auditing")
