import http
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Session, select

from ..models.Audit import GENESIS_HASH, ActivityLog, ChainValidation

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


def http_action(method: str, path: str, status_code: int) -> str:
    return f"{method} {path} {status_code} {http.HTTPStatus(status_code).phrase}"


def log_event(
    db: Session,
    actor_id: str | None,
    action: str,
    details: Optional[str] = None,
    subject_id: str | None = None,
) -> ActivityLog:
    """
    Appends a new entry to the ActivityLog chain.
    """
    last_entry = db.exec(select(ActivityLog).order_by(ActivityLog.id.desc())).first()
    previous_hash = last_entry.current_hash if last_entry else GENESIS_HASH

    new_log = ActivityLog(
        actor_id=actor_id or ANONYMOUS,
        subject_id=subject_id,
        action=action,
        details=details or "",
        previous_hash=previous_hash,
        current_hash="",  # Placeholder, will be calculated
        timestamp=datetime.now(timezone.utc).replace(microsecond=0),
    )
    new_log.current_hash = new_log.calculate_hash()

    db.add(new_log)
    db.commit()
    db.refresh(new_log)
    return new_log


def list_activity(db: Session, actor_id: str | None = None, limit: int = 100) -> list[ActivityLog]:
    """
    Newest first. ``actor_id`` restricts to entries where the user is the
    actor or the subject.
    """
    statement = select(ActivityLog)
    if actor_id is not None:
        statement = statement.where(
            (ActivityLog.actor_id == actor_id) | (ActivityLog.subject_id == actor_id)
        )
    return list(db.exec(statement.order_by(ActivityLog.id.desc()).limit(limit)).all())


def validate_chain(db: Session) -> ChainValidation:
    entries = db.exec(select(ActivityLog).order_by(ActivityLog.id.asc())).all()

    previous_hash = GENESIS_HASH
    for entry in entries:
        if entry.previous_hash != previous_hash or entry.calculate_hash() != entry.current_hash:
            logger.error(f"Activity log chain broken at entry {entry.id}")
            return ChainValidation(valid=False, broken_id=entry.id, entries=len(entries))
        previous_hash = entry.current_hash

    return ChainValidation(valid=True, entries=len(entries))
