import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .utils import ensure_dir, file_lock


def _connect(db_file: Path) -> sqlite3.Connection:
    ensure_dir(db_file.parent)
    conn = sqlite3.connect(db_file)
    conn.execute("pragma journal_mode=WAL;")
    return conn


def init_db(db_file: Optional[Path] = None) -> None:
    db_file = db_file or config.DB_FILE
    with file_lock(db_file.with_suffix(".lock")):
        conn = _connect(db_file)
        try:
            conn.execute(
                """
                create table if not exists events (
                    id integer primary key autoincrement,
                    ts text not null,
                    event text not null,
                    organization_id text,
                    subject_id text,
                    actor text,
                    data text
                );
                """
            )
            conn.commit()
        finally:
            conn.close()


def insert_event(
    ts: str,
    event: str,
    organization_id: str,
    subject_id: str,
    actor: str,
    data: Dict[str, Any],
    db_file: Optional[Path] = None,
) -> None:
    db_file = db_file or config.DB_FILE
    init_db(db_file)
    with file_lock(db_file.with_suffix(".lock")):
        conn = _connect(db_file)
        try:
            conn.execute(
                "insert into events (ts, event, organization_id, subject_id, actor, data)"
                " values (?, ?, ?, ?, ?, ?)",
                (ts, event, organization_id, subject_id, actor, json.dumps(data, ensure_ascii=False)),
            )
            conn.commit()
        finally:
            conn.close()


def list_events(
    limit: int = 50, organization_id: Optional[str] = None, db_file: Optional[Path] = None
) -> List[Dict[str, Any]]:
    db_file = db_file or config.DB_FILE
    init_db(db_file)
    query = "select ts, event, organization_id, subject_id, actor, data from events"
    params: List[Any] = []
    if organization_id:
        query += " where organization_id = ?"
        params.append(organization_id)
    query += " order by id desc limit ?"
    params.append(limit)
    with file_lock(db_file.with_suffix(".lock")):
        conn = _connect(db_file)
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
    events = []
    for ts, event, org_id, subject_id, actor, data in rows:
        try:
            payload = json.loads(data) if data else {}
        except ValueError:
            payload = {"raw": data}
        events.append(
            {
                "timestamp": ts,
                "event": event,
                "organization_id": org_id,
                "subject_id": subject_id,
                "actor": actor,
                "data": payload,
            }
        )
    return events
