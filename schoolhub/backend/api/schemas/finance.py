from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ...models.db_models import InvoiceStatus, BillingCycle


class InvoiceCreateRequest(BaseModel):
    """New invoices always start as 'pending'."""
    student_id: UUID
    amount_due: Decimal = Field(..., gt=0)
    due_date: date
    fee_structure_id: Optional[UUID] = None


class InvoiceStatusUpdateRequest(BaseModel):
    status: InvoiceStatus


class FeeStructureCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    billing_cycle: BillingCycle
    description: Optional[str] = None
    is_active: bool = True


class FeeStructureUpdateRequest(BaseModel):
    """Partial update; only the fields that are sent are changed."""
    name: Optional[str] = Field(None, min_length=1)
    amount: Optional[Decimal] = Field(None, ge=0)
    billing_cycle: Optional[BillingCycle] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
