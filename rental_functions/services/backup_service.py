import logging
from datetime import datetime, timezone

from rental_functions.constants import BACKUP_VERSION
from rental_functions.schemas import Backup
from rental_functions.services.db_service import COLLECTION_NODES, get_raw_collection, replace_collection

log = logging.getLogger(__name__)


class BackupVersionError(ValueError):
    """Raised when a backup was produced by an incompatible exporter."""


def _as_list(raw) -> list:
    if not raw:
        return []
    if isinstance(raw, dict):
        return [{'id': key, **value} for key, value in raw.items() if isinstance(value, dict)]
    return [value for value in raw if isinstance(value, dict)]


def export_backup(owner_id: str, exported_at: datetime = None) -> dict:
    """
    Exports all of an owner's tables as a versioned JSON-serialisable backup.
    """
    exported_at = exported_at or datetime.now(timezone.utc)
    backup = Backup(
        version=BACKUP_VERSION,
        exported_at=exported_at.isoformat(),
        data={node: _as_list(get_raw_collection(owner_id, node)) for node in COLLECTION_NODES},
    )
    log.info(f"Exported backup for owner {owner_id}: " + ", ".join(
        f"{len(records)} {node}" for node, records in backup.data.items()
    ))
    return backup.model_dump()


def import_backup(owner_id: str, backup: dict) -> None:
    """
    Replaces an owner's tables with the contents of a backup.
    Tables are restored parents first (properties, tenants, payments, gas).
    """
    if not backup or backup.get('version') != BACKUP_VERSION:
        raise BackupVersionError(f"Unsupported backup version: {(backup or {}).get('version')}")

    parsed = Backup.model_validate(backup)
    for node in COLLECTION_NODES:
        records = parsed.data.get(node, [])
        replace_collection(owner_id, node, records)
        log.info(f"Restored {len(records)} {node} records for owner {owner_id}")
