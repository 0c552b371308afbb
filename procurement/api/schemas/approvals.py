"""Approval workflow schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# Requests
class LineItemCreate(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal
    is_deleted: bool = False


class ApprovableCreateBase(BaseModel):
    number: Optional[str] = None
    title: Optional[str] = None
    vendor_name: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    supersedes_id: Optional[str] = None
    submit: bool = True


class PurchaseOrderCreate(ApprovableCreateBase):
    line_items: List[LineItemCreate] = Field(default_factory=list)
    tax: Optional[Decimal] = None
    shipping: Optional[Decimal] = None


class ServiceRequisitionCreate(ApprovableCreateBase):
    invoice_amount: Decimal
    original_estimate: Optional[Decimal] = None
    justification: Optional[str] = None


class SubmitAction(BaseModel):
    justification: Optional[str] = None


class ApprovalAction(BaseModel):
    comment: Optional[str] = None


class RejectAction(BaseModel):
    reason: str


class BatchApprovalRequest(BaseModel):
    record_ids: List[str]
    comment: Optional[str] = None
    reason: Optional[str] = None


# Responses
class LineItemResponse(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    is_deleted: bool


class ApprovableResponse(BaseModel):
    id: str
    number: str
    kind: str
    status: str
    required_tiers: List[str]
    current_approval_tier: Optional[str]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    line_items: List[LineItemResponse]
    invoice_amount: Optional[Decimal]
    original_estimate: Optional[Decimal]
    variance: Optional[Decimal]
    variance_percent: Optional[Decimal]
    variance_justification: Optional[str]
    justification_required: bool
    title: Optional[str]
    vendor_name: Optional[str]
    department: Optional[str]
    notes: Optional[str]
    supersedes_id: Optional[str]
    created_by: Optional[str]
    submitted_by: Optional[str]
    submitted_at: Optional[datetime]
    auto_approved_at: Optional[datetime]
    tier2_approved_by: Optional[str]
    tier2_approved_at: Optional[datetime]
    tier3_approved_by: Optional[str]
    tier3_approved_at: Optional[datetime]
    rejected_by: Optional[str]
    rejected_at: Optional[datetime]
    rejection_reason: Optional[str]
    closed_by: Optional[str]
    closed_at: Optional[datetime]
    version: int
    created_at: datetime
    updated_at: datetime


class ApprovableListResponse(BaseModel):
    items: List[ApprovableResponse]
    total: int


class ApprovalHistoryResponse(BaseModel):
    id: str
    from_state: str
    to_state: str
    event: str
    actor_id: Optional[str]
    tier: Optional[str]
    comment: Optional[str]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class ApprovalStepResponse(BaseModel):
    tier: str
    level: int
    label: str
    threshold: Decimal
    status: str
    actor_id: Optional[str]
    decided_at: Optional[datetime]


class PendingCountsResponse(BaseModel):
    tier2: int
    tier3: int
    total: int


class BatchApprovalResponse(BaseModel):
    approved: List[str] = []
    rejected: List[str] = []
    failed: List[dict] = []
