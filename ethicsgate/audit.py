import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional

from . import config
from .db import insert_event
from .errors import CollaboratorError
from .utils import ensure_dir, file_lock, utc_now

logger = logging.getLogger(__name__)


def record_event(
    event_type: str,
    organization_id: str,
    subject_id: str,
    actor: str,
    data: Dict[str, Any],
    log_file: Optional[Path] = None,
    db_file: Optional[Path] = None,
) -> Dict[str, Any]:
    log_file = log_file or config.AUDIT_LOG_FILE
    entry = {
        "timestamp": utc_now(),
        "event": event_type,
        "organization_id": organization_id,
        "subject_id": subject_id,
        "actor": actor,
        "data": data,
    }
    try:
        ensure_dir(log_file.parent)
        with file_lock(log_file.with_suffix(".lock")):
            with log_file.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False))
                f.write("\n")
    except OSError as exc:
        raise CollaboratorError(f"Cannot append to audit log {log_file}: {exc}") from exc

    # The JSON log is authoritative; the SQLite mirror is best-effort
    try:
        insert_event(
            entry["timestamp"], event_type, organization_id, subject_id, actor, data, db_file=db_file
        )
    except (OSError, sqlite3.Error):
        logger.warning("audit.mirror_failed event=%s subject=%s", event_type, subject_id, exc_info=True)
    return entry
