"""SeasonSnapshot model.

Snapshots freeze the state of a season at a point in time (season close,
reopen, or any compliance checkpoint). They are written once:

- the checksum is computed while the object is constructed, before it can
  reach a session;
- once persisted, assigning any column of an immutable snapshot raises
  ``SnapshotImmutableError`` straight away;
- a flush that would UPDATE or DELETE an immutable row raises as well.

``snapshot_data`` is a plain JSON column (no in-place change tracking), so a
payload mutated in memory or in the database is not blocked here; it is caught
later by checksum verification.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Text, event, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from seasonhub.core.database import Base
from seasonhub.core.exceptions import SnapshotImmutableError


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)


def compute_checksum(data: Any) -> str:
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


class SeasonSnapshot(Base):
    __tablename__ = "season_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=False, index=True)
    snapshot_type = Column(String(50), nullable=False, index=True)
    snapshot_data = Column(JSON, nullable=False)
    snapshot_date = Column(DateTime(timezone=True), nullable=False)
    is_immutable = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    description = Column(Text, nullable=True)
    checksum = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    season = relationship("Season")

    def __init__(self, **kwargs):
        kwargs.setdefault("is_immutable", True)
        kwargs.setdefault("snapshot_date", datetime.now(timezone.utc))
        kwargs.setdefault("snapshot_data", {})
        kwargs["checksum"] = compute_checksum(kwargs["snapshot_data"])
        super().__init__(**kwargs)

    @classmethod
    def build(cls, season_id: int, snapshot_type: str, data: Any, **extra) -> "SeasonSnapshot":
        return cls(season_id=season_id, snapshot_type=snapshot_type, snapshot_data=data, **extra)

    def verify_checksum(self) -> bool:
        return compute_checksum(self.snapshot_data) == self.checksum


_GUARDED_COLUMNS = (
    "season_id",
    "snapshot_type",
    "snapshot_data",
    "snapshot_date",
    "is_immutable",
    "created_by",
    "description",
    "checksum",
)


def _reject_persisted_assignment(target, value, oldvalue, initiator):
    if inspect(target).has_identity and target.is_immutable:
        raise SnapshotImmutableError(
            f"Snapshot {target.id} is immutable; '{initiator.key}' cannot be changed"
        )
    return value


for _column in _GUARDED_COLUMNS:
    event.listen(getattr(SeasonSnapshot, _column), "set", _reject_persisted_assignment, retval=True)


def _was_immutable(target) -> bool:
    hist = inspect(target).attrs["is_immutable"].history
    if hist.deleted:
        return bool(hist.deleted[0])
    return bool(target.is_immutable)


@event.listens_for(SeasonSnapshot, "before_update")
def snapshot_before_update(mapper, connection, target):
    if _was_immutable(target):
        raise SnapshotImmutableError(f"Snapshot {target.id} is immutable and cannot be updated")


@event.listens_for(SeasonSnapshot, "before_delete")
def snapshot_before_delete(mapper, connection, target):
    if _was_immutable(target):
        raise SnapshotImmutableError(f"Snapshot {target.id} is immutable and cannot be deleted")
