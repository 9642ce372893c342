"""
Checksummed JSON backups wrapping the store's export/import.

The envelope never looks inside ``data``; it only hashes it.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from speedlesen.errors import FormatError, IntegrityError

logger = logging.getLogger(__name__)

BACKUP_FORMAT = "speedlesen.backup.v1"


def canonical_dumps(data: Any) -> str:
    """Compact serialization the digest is computed over."""
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_backup_payload(store, exported_at: Optional[str] = None) -> Dict[str, Any]:
    data = store.export_json()
    return {
        "format": BACKUP_FORMAT,
        "dbVersion": data.get("version"),
        "exportedAt": exported_at or _now(),
        "hash": sha256_hex(canonical_dumps(data)),
        "data": data,
    }


def backup_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"speedlesen_{now.strftime('%Y%m%dT%H%M%S')}_backup.json"


def dumps_backup(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


def parse_and_verify_backup(
    source: Union[str, bytes, Dict[str, Any]]
) -> Dict[str, Any]:
    """Parse a backup and check its digest. Raises before any write."""
    if isinstance(source, (str, bytes)):
        try:
            envelope = json.loads(source)
        except ValueError as exc:
            raise FormatError("Backup is not valid JSON.") from exc
    else:
        envelope = source
    if (
        not isinstance(envelope, dict)
        or envelope.get("format") != BACKUP_FORMAT
        or not isinstance(envelope.get("data"), dict)
        or not envelope.get("hash")
    ):
        raise FormatError("Wrong backup format.")
    if sha256_hex(canonical_dumps(envelope["data"])) != envelope["hash"]:
        raise IntegrityError("Backup hash does not match its data.")
    return envelope


def restore_backup(
    store, source: Union[str, bytes, Dict[str, Any]], overwrite: bool = False
) -> Dict[str, Any]:
    envelope = parse_and_verify_backup(source)
    store.import_json(envelope["data"], overwrite=overwrite)
    logger.info(
        "Restored backup from %s (overwrite=%s)", envelope.get("exportedAt"), overwrite
    )
    return {
        "ok": True,
        "version": envelope.get("dbVersion"),
        "exportedAt": envelope.get("exportedAt"),
    }
