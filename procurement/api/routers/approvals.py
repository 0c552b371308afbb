"""Approval workflow API endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from procurement.api.deps import get_actor_id, get_coordinator
from procurement.api.schemas.approvals import (
    ApprovableListResponse,
    ApprovableResponse,
    ApprovalAction,
    ApprovalHistoryResponse,
    ApprovalStepResponse,
    BatchApprovalRequest,
    BatchApprovalResponse,
    PendingCountsResponse,
    PurchaseOrderCreate,
    RejectAction,
    ServiceRequisitionCreate,
    SubmitAction,
)
from procurement.common.logger import get_logger
from procurement.core.approval import (
    ApprovableRecord,
    ApprovalCoordinator,
    LineItemInput,
    PurchaseOrderInput,
    ServiceRequisitionInput,
    Status,
)
from procurement.core.errors import (
    AlreadyProcessedError,
    ApprovalError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from procurement.core.policy.thresholds import Tier

router = APIRouter(prefix="/approvals", tags=["approvals"])

logger = get_logger("api.approvals")


def _http_error(error: ApprovalError) -> HTTPException:
    """Translate a workflow error into an HTTP response."""
    if isinstance(error, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, PermissionDeniedError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, (AlreadyProcessedError, InvalidTransitionError, ConflictError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    logger.info("Request refused with %d: %s", code, error)
    return HTTPException(status_code=code, detail=str(error))


def _response(record: ApprovableRecord) -> ApprovableResponse:
    return ApprovableResponse(**record.to_dict())


# Endpoints
@router.get("", response_model=ApprovableListResponse)
async def list_approvables(
    status_filter: Optional[List[Status]] = Query(None, alias="status"),
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """List records, optionally filtered by status."""
    records = coordinator.list_records(status_filter)
    return ApprovableListResponse(items=[_response(r) for r in records], total=len(records))


@router.get("/pending", response_model=ApprovableListResponse)
async def list_pending(
    tier: Optional[Tier] = None,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """List records awaiting a decision, oldest first."""
    records = coordinator.list_pending(tier)
    return ApprovableListResponse(items=[_response(r) for r in records], total=len(records))


@router.get("/pending/counts", response_model=PendingCountsResponse)
async def pending_counts(
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Number of records waiting at each tier."""
    return PendingCountsResponse(**coordinator.pending_counts())


@router.post("/purchase-orders", response_model=ApprovableResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    body: PurchaseOrderCreate,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Raise a purchase order."""
    data = PurchaseOrderInput(
        line_items=[LineItemInput(**item.model_dump()) for item in body.line_items],
        tax=body.tax,
        shipping=body.shipping,
        number=body.number,
        title=body.title,
        vendor_name=body.vendor_name,
        department=body.department,
        notes=body.notes,
        supersedes_id=body.supersedes_id,
    )
    try:
        record = coordinator.create_approvable(data, actor_id=actor_id, submit=body.submit)
    except ApprovalError as e:
        raise _http_error(e)
    return _response(record)


@router.post("/service-requisitions", response_model=ApprovableResponse, status_code=status.HTTP_201_CREATED)
async def create_service_requisition(
    body: ServiceRequisitionCreate,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Raise a service requisition."""
    data = ServiceRequisitionInput(
        invoice_amount=body.invoice_amount,
        original_estimate=body.original_estimate,
        justification=body.justification,
        number=body.number,
        title=body.title,
        vendor_name=body.vendor_name,
        department=body.department,
        notes=body.notes,
        supersedes_id=body.supersedes_id,
    )
    try:
        record = coordinator.create_approvable(data, actor_id=actor_id, submit=body.submit)
    except ApprovalError as e:
        raise _http_error(e)
    return _response(record)


@router.post("/batch/approve", response_model=BatchApprovalResponse)
async def batch_approve(
    batch: BatchApprovalRequest,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Approve multiple records in a batch."""
    result = coordinator.batch_approve(batch.record_ids, actor_id, comment=batch.comment)
    return BatchApprovalResponse(**result)


@router.post("/batch/reject", response_model=BatchApprovalResponse)
async def batch_reject(
    batch: BatchApprovalRequest,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Reject multiple records in a batch."""
    try:
        result = coordinator.batch_reject(batch.record_ids, actor_id, batch.reason or "")
    except ApprovalError as e:
        raise _http_error(e)
    return BatchApprovalResponse(**result)


@router.get("/{record_id}", response_model=ApprovableResponse)
async def get_approvable(
    record_id: str,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Get a specific record."""
    try:
        return _response(coordinator.get(record_id))
    except ApprovalError as e:
        raise _http_error(e)


@router.get("/{record_id}/history", response_model=List[ApprovalHistoryResponse])
async def get_history(
    record_id: str,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Get the state transition history for a record."""
    try:
        history = coordinator.history(record_id)
    except ApprovalError as e:
        raise _http_error(e)
    return [ApprovalHistoryResponse(**entry.to_dict()) for entry in history]


@router.get("/{record_id}/chain", response_model=List[ApprovalStepResponse])
async def get_chain(
    record_id: str,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Per-tier approval steps for a record."""
    try:
        record = coordinator.get(record_id)
    except ApprovalError as e:
        raise _http_error(e)
    return [ApprovalStepResponse(**step) for step in coordinator.approval_chain(record)]


@router.post("/{record_id}/submit", response_model=ApprovableResponse)
async def submit_approvable(
    record_id: str,
    action: SubmitAction,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Submit a draft for approval."""
    try:
        record = coordinator.submit(record_id, actor_id, justification=action.justification)
    except ApprovalError as e:
        raise _http_error(e)
    return _response(record)


@router.post("/{record_id}/approve", response_model=ApprovableResponse)
async def approve_approvable(
    record_id: str,
    action: ApprovalAction,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Approve a pending record at its current tier."""
    try:
        record = coordinator.approve(record_id, actor_id, comment=action.comment)
    except ApprovalError as e:
        raise _http_error(e)
    return _response(record)


@router.post("/{record_id}/reject", response_model=ApprovableResponse)
async def reject_approvable(
    record_id: str,
    action: RejectAction,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Reject a pending record."""
    try:
        record = coordinator.reject(record_id, actor_id, action.reason)
    except ApprovalError as e:
        raise _http_error(e)
    return _response(record)


@router.post("/{record_id}/close", response_model=ApprovableResponse)
async def close_approvable(
    record_id: str,
    coordinator: ApprovalCoordinator = Depends(get_coordinator),
    actor_id: str = Depends(get_actor_id),
):
    """Close an approved record."""
    try:
        record = coordinator.close(record_id, actor_id)
    except ApprovalError as e:
        raise _http_error(e)
    return _response(record)
