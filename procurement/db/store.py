"""SQLAlchemy-backed approvable store.

Updates are issued as ``UPDATE ... WHERE id = :id AND status = :expected
AND version = :version``; a write that matches no row lost a race.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from procurement.common.logger import get_logger
from procurement.core.approval.records import ApprovableRecord, LineItem, RecordKind, TransitionRecord
from procurement.core.approval.states import Status
from procurement.core.errors import ConflictError, NotFoundError
from procurement.core.money import DEFAULT_PLACES, check_places, quantize
from procurement.core.policy.thresholds import Tier
from procurement.db.models import (
    ApprovableRecordModel,
    ApprovableLineItemModel,
    ApprovalHistoryModel,
)

logger = get_logger("store")

# Columns copied one-to-one between the record and its row
_SCALAR_FIELDS = (
    "number",
    "subtotal",
    "tax",
    "shipping",
    "total",
    "invoice_amount",
    "original_estimate",
    "variance",
    "variance_percent",
    "variance_justification",
    "justification_required",
    "title",
    "vendor_name",
    "department",
    "notes",
    "supersedes_id",
    "created_by",
    "submitted_by",
    "submitted_at",
    "auto_approved_at",
    "tier2_approved_by",
    "tier2_approved_at",
    "tier3_approved_by",
    "tier3_approved_at",
    "rejected_by",
    "rejected_at",
    "rejection_reason",
    "closed_by",
    "closed_at",
    "created_at",
    "updated_at",
)

_MONEY_FIELDS = frozenset({
    "subtotal",
    "tax",
    "shipping",
    "total",
    "invoice_amount",
    "original_estimate",
    "variance",
    "variance_percent",
})

_TIMESTAMP_FIELDS = frozenset(name for name in _SCALAR_FIELDS if name.endswith("_at"))


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlApprovableStore:
    """
    Store backed by a relational database.

    Each operation runs in its own session and transaction, so a record row
    and the history rows written with it commit together.
    """

    def __init__(self, session_factory: Callable[[], Session], places: int = DEFAULT_PLACES):
        """
        Args:
            session_factory: Callable returning a new Session (a sessionmaker)
            places: Decimal places money is quantized to on load, at most
                the scale of the money columns
        """
        self.session_factory = session_factory
        self.places = check_places(places)

    def load_approvable(self, record_id: str) -> ApprovableRecord:
        with self.session_factory() as session:
            row = session.execute(
                self._select().where(ApprovableRecordModel.id == record_id)
            ).scalar_one_or_none()
            if row is None:
                raise NotFoundError(record_id)
            return self._to_record(row)

    def save_approvable(
        self,
        record: ApprovableRecord,
        expected_prior_status: Optional[Status],
    ) -> ApprovableRecord:
        """
        Insert or conditionally update a record with its new history.

        Raises:
            ConflictError: If the stored row changed since it was read, or an
                insert collides with an existing record
            NotFoundError: If an update targets a missing record
        """
        with self.session_factory() as session:
            try:
                with session.begin():
                    if expected_prior_status is None:
                        self._insert(session, record)
                    else:
                        self._update(session, record, expected_prior_status)
            except IntegrityError as e:
                logger.warning(f"Integrity error saving {record.id}: {e.orig}")
                raise ConflictError(
                    record.id,
                    expected_prior_status.value if expected_prior_status else None,
                    None,
                ) from e

        return self.load_approvable(record.id)

    def query_approvables(self, statuses: Iterable[Status]) -> List[ApprovableRecord]:
        values = [Status(s).value for s in statuses]
        with self.session_factory() as session:
            rows = session.execute(
                self._select()
                .where(ApprovableRecordModel.status.in_(values))
                .order_by(ApprovableRecordModel.created_at.asc())
            ).scalars().all()
            return [self._to_record(row) for row in rows]

    def _select(self):
        return select(ApprovableRecordModel).options(
            selectinload(ApprovableRecordModel.line_items),
            selectinload(ApprovableRecordModel.history),
        )

    def _insert(self, session: Session, record: ApprovableRecord) -> None:
        existing = session.get(ApprovableRecordModel, record.id)
        if existing is not None:
            raise ConflictError(record.id, None, existing.status)

        row = ApprovableRecordModel(
            id=record.id,
            kind=record.kind.value,
            version=record.version + 1,
            **self._state_values(record),
        )
        row.line_items = [
            ApprovableLineItemModel(
                position=position,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                is_deleted=item.is_deleted,
            )
            for position, item in enumerate(record.line_items)
        ]
        session.add(row)
        self._add_history(session, record, already_stored=0)

    def _update(self, session: Session, record: ApprovableRecord, expected: Status) -> None:
        result = session.execute(
            update(ApprovableRecordModel)
            .where(
                ApprovableRecordModel.id == record.id,
                ApprovableRecordModel.status == expected.value,
                ApprovableRecordModel.version == record.version,
            )
            .values(version=record.version + 1, **self._state_values(record))
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            actual = session.execute(
                select(ApprovableRecordModel.status).where(ApprovableRecordModel.id == record.id)
            ).scalar_one_or_none()
            if actual is None:
                raise NotFoundError(record.id)
            raise ConflictError(record.id, expected.value, actual)

        stored = session.execute(
            select(ApprovalHistoryModel.id).where(ApprovalHistoryModel.record_id == record.id)
        ).scalars().all()
        self._add_history(session, record, already_stored=len(stored))

    def _add_history(self, session: Session, record: ApprovableRecord, already_stored: int) -> None:
        for sequence, entry in enumerate(record.history[already_stored:], start=already_stored):
            session.add(ApprovalHistoryModel(
                id=entry.id,
                record_id=record.id,
                sequence=sequence,
                from_state=entry.from_state.value,
                to_state=entry.to_state.value,
                event=entry.event,
                tier=entry.tier.value if entry.tier else None,
                actor_id=entry.actor_id,
                comment=entry.comment,
                extra_data=entry.metadata,
                created_at=entry.timestamp,
            ))

    def _state_values(self, record: ApprovableRecord) -> dict:
        values = {name: getattr(record, name) for name in _SCALAR_FIELDS}
        values["status"] = record.status.value
        values["required_tiers"] = [tier.value for tier in record.required_tiers]
        values["current_approval_tier"] = (
            record.current_approval_tier.value if record.current_approval_tier else None
        )
        return values

    def _money(self, value) -> Optional[Decimal]:
        if value is None:
            return None
        return quantize(Decimal(value), self.places)

    def _to_record(self, row: ApprovableRecordModel) -> ApprovableRecord:
        values = {}
        for name in _SCALAR_FIELDS:
            value = getattr(row, name)
            if name in _MONEY_FIELDS:
                value = self._money(value)
            elif name in _TIMESTAMP_FIELDS:
                value = _aware(value)
            values[name] = value

        return ApprovableRecord(
            id=row.id,
            kind=RecordKind(row.kind),
            status=Status(row.status),
            required_tiers=tuple(Tier(t) for t in row.required_tiers or ()),
            current_approval_tier=Tier(row.current_approval_tier) if row.current_approval_tier else None,
            line_items=tuple(
                LineItem(
                    description=item.description,
                    quantity=Decimal(item.quantity),
                    unit_price=self._money(item.unit_price),
                    is_deleted=item.is_deleted,
                )
                for item in row.line_items
            ),
            history=tuple(
                TransitionRecord(
                    id=entry.id,
                    from_state=Status(entry.from_state),
                    to_state=Status(entry.to_state),
                    event=entry.event,
                    actor_id=entry.actor_id,
                    timestamp=_aware(entry.created_at),
                    tier=Tier(entry.tier) if entry.tier else None,
                    comment=entry.comment,
                    metadata=dict(entry.extra_data or {}),
                )
                for entry in row.history
            ),
            version=row.version,
            **values,
        )
