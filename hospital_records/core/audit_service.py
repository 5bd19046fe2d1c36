from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from .audit_models import AccessAction, PatientAccessLog


def log_access(
    db: Session,
    patient,
    user_id: Optional[int],
    action: AccessAction,
    details: Optional[str] = None,
) -> PatientAccessLog:
    """
    Stage an access log entry for a patient record.

    The entry and the record's last-accessed fields are added to the caller's
    session but not committed; the calling operation commits them together
    with its own changes, or rolls them back with them.

    Args:
        db: The database session.
        patient: The Patient being accessed.
        user_id: The ID of the acting account.
        action: Kind of access (View, Create, Update, Delete, Export).
        details: Free-text description of the access.

    Returns:
        The staged PatientAccessLog object.
    """
    now = datetime.now(timezone.utc)
    entry = PatientAccessLog(
        user_id=user_id,
        action=action,
        details=details,
        timestamp=now,
    )
    # Appending through the relationship fills patient_id on flush
    patient.access_log.append(entry)
    patient.last_accessed_at = now
    patient.last_accessed_by = user_id
    db.add(entry)
    return entry
