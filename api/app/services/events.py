import json
import uuid
from typing import Any

from sqlalchemy import text


def log_matching_run_event(
    db,
    *,
    event_type: str,
    payload: dict[str, Any] | None = None,
) -> None:
    payload = payload or {}
    db.execute(
        text(
            """
            INSERT INTO matching_run_event (id, event_type, payload)
            VALUES (:id, :event_type, CAST(:payload AS jsonb))
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "event_type": event_type,
            "payload": json.dumps(payload),
        },
    )
