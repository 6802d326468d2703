"""Records owned by the application state.

Persons own their invoices exclusively; an invoice never moves between
persons. Source bytes of an upload live only in memory and are excluded
from every serialization.
"""

import uuid
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from invoice_organizer.extraction.schema import InvoiceFields, InvoiceType


def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


class InvoiceStatus(str, Enum):
    """Processing status of an invoice record."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"


class LLMConfig(BaseModel):
    """Remote structuring endpoint configuration.

    Attributes:
        base_url: Base address of the chat-completions compatible API
        api_key: Credential sent as bearer token
        model_name: Model identifier
    """

    base_url: str = ""
    api_key: str = ""
    model_name: str = ""

    def is_complete(self) -> bool:
        """Return True when all three values are set."""
        return all(v.strip() for v in (self.base_url, self.api_key, self.model_name))


class TripInfo(BaseModel):
    """Free-text description of the reimbursed trip, echoed in the summary export."""

    competition_name: str = ""
    time: str = ""
    location: str = ""
    team_name: str = ""
    remarks: str = ""


class InvoiceRecord(BaseModel):
    """One uploaded receipt and the fields extracted from it."""

    id: str = Field(default_factory=new_id)
    file_name: str
    content_type: str | None = None
    type: InvoiceType | None = None
    amount: Decimal | None = None
    date: str | None = None
    description: str | None = None
    raw_text: str | None = None
    status: InvoiceStatus = InvoiceStatus.PENDING
    error_message: str | None = None
    error_code: str | None = Field(default=None, description="Failure kind, stable across messages")
    source: bytes | None = Field(default=None, exclude=True, repr=False)

    def apply_fields(self, fields: InvoiceFields) -> None:
        """Copy extracted fields onto the record."""
        self.type = fields.type
        self.amount = fields.amount
        self.date = fields.date
        self.description = fields.description
        self.raw_text = fields.raw_text


class PersonRecord(BaseModel):
    """A reimbursement claimant and the invoices they own."""

    id: str = Field(default_factory=new_id)
    name: str
    employee_id: str
    invoices: list[InvoiceRecord] = Field(default_factory=list)
