"""Database models for procurement approvals."""

from procurement.db.models.approvable import (
    ApprovableRecordModel,
    ApprovableLineItemModel,
    ApprovalHistoryModel,
)

__all__ = [
    "ApprovableRecordModel",
    "ApprovableLineItemModel",
    "ApprovalHistoryModel",
]
