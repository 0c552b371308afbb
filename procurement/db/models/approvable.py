"""Approval workflow database models.

Stores purchase orders and service requisitions, their line items and their
state transition history.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from procurement.core.money import MAX_PLACES, QUANTITY_PLACES
from procurement.db.base import Base

# Wide enough for any configured money places
MONEY = Numeric(18, MAX_PLACES)


class ApprovableRecordModel(Base):
    """
    A purchase order or service requisition under tiered approval.

    ``version`` increments on every write; updates are conditional on the
    status and version the writer read.
    """
    __tablename__ = "approvable_records"

    id = Column(String(32), primary_key=True)
    number = Column(String(50), nullable=False, unique=True, index=True)
    kind = Column(String(50), nullable=False, index=True)

    # Workflow state
    status = Column(String(50), nullable=False, default="draft", index=True)
    required_tiers = Column(JSON, nullable=False, default=list)
    current_approval_tier = Column(String(20), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)

    # Purchase order money
    subtotal = Column(MONEY, nullable=False, default=0)
    tax = Column(MONEY, nullable=False, default=0)
    shipping = Column(MONEY, nullable=False, default=0)
    total = Column(MONEY, nullable=False, default=0)

    # Service requisition money
    invoice_amount = Column(MONEY, nullable=True)
    original_estimate = Column(MONEY, nullable=True)
    variance = Column(MONEY, nullable=True)
    variance_percent = Column(Numeric(14, MAX_PLACES), nullable=True)
    variance_justification = Column(Text, nullable=True)
    justification_required = Column(Boolean, nullable=False, default=False)

    # Context
    title = Column(String(255), nullable=True)
    vendor_name = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    supersedes_id = Column(String(32), ForeignKey("approvable_records.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(String(255), nullable=True)

    # Submission / approval / rejection / closure tracking
    submitted_by = Column(String(255), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    auto_approved_at = Column(DateTime(timezone=True), nullable=True)
    tier2_approved_by = Column(String(255), nullable=True)
    tier2_approved_at = Column(DateTime(timezone=True), nullable=True)
    tier3_approved_by = Column(String(255), nullable=True)
    tier3_approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(255), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    closed_by = Column(String(255), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    line_items = relationship(
        "ApprovableLineItemModel",
        back_populates="record",
        order_by="ApprovableLineItemModel.position",
        cascade="all, delete-orphan",
    )
    history = relationship(
        "ApprovalHistoryModel",
        back_populates="record",
        order_by="ApprovalHistoryModel.sequence",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ApprovableRecord {self.number} [{self.status}]>"


class ApprovableLineItemModel(Base):
    """A purchase order line. Deleted lines stay for audit."""
    __tablename__ = "approvable_line_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String(32), ForeignKey("approvable_records.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    description = Column(Text, nullable=False)
    quantity = Column(Numeric(14, QUANTITY_PLACES), nullable=False)
    unit_price = Column(MONEY, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    record = relationship("ApprovableRecordModel", back_populates="line_items")

    def __repr__(self) -> str:
        return f"<ApprovableLineItem {self.description} x{self.quantity}>"


class ApprovalHistoryModel(Base):
    """
    Records all state transitions for approvable records.

    Provides a complete audit trail of the approval workflow.
    """
    __tablename__ = "approval_history"

    id = Column(String(32), primary_key=True)
    record_id = Column(String(32), ForeignKey("approvable_records.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    # Transition details
    from_state = Column(String(50), nullable=False)
    to_state = Column(String(50), nullable=False)
    event = Column(String(50), nullable=False)
    tier = Column(String(20), nullable=True)

    # Actor
    actor_id = Column(String(255), nullable=True)

    # Optional comment (the reason for rejections)
    comment = Column(Text, nullable=True)

    # Additional context
    extra_data = Column(JSON, nullable=False, default=dict)

    # Timestamp
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    record = relationship("ApprovableRecordModel", back_populates="history")

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.from_state} -> {self.to_state}>"
