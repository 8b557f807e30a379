"""Record migration system for Reelkeeper.

Reels saved by earlier app versions lack fields added later. When records are
loaded, each one is upgraded in place to ``APP_VERSION`` by applying the registered
migrations in version order.
"""

from typing import Any, Callable

from packaging.version import InvalidVersion, Version
from packaging.version import parse as parse_version

from reelkeeper.utils.dates import display_date, display_time, parse_timestamp
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

# Current app version
APP_VERSION = "1.2.0"

# Records written before versioning was added carry no appVersion
BASE_VERSION = "0.0.0"


def migrate_to_1_1_0(record: dict[str, Any]) -> None:
    """Migration to version 1.1.0: Add notes field.

    Records from the first release had no notes; they get an empty string.

    Args:
        record: Persisted reel record
    """
    if not isinstance(record.get("notes"), str):
        record["notes"] = ""
    logger.debug(f"Migrated reel {record.get('id')} to 1.1.0 (notes field added)")


def migrate_to_1_2_0(record: dict[str, Any]) -> None:
    """Migration to version 1.2.0: Add timeAdded field.

    The display time is derived from the record's creation timestamp. A missing
    dateAdded is filled the same way. Records without a parseable timestamp get
    empty display strings.

    Args:
        record: Persisted reel record
    """
    created = parse_timestamp(str(record.get("timestamp") or ""))
    if not record.get("dateAdded"):
        record["dateAdded"] = display_date(created) if created else ""
    if not record.get("timeAdded"):
        record["timeAdded"] = display_time(created) if created else ""
    logger.debug(f"Migrated reel {record.get('id')} to 1.2.0 (timeAdded field added)")


# Migration registry: version -> migration function
# Migrations are applied sequentially in version order
MIGRATIONS: dict[str, Callable[[dict[str, Any]], None]] = {
    "1.1.0": migrate_to_1_1_0,
    "1.2.0": migrate_to_1_2_0,
}


def migrate_record(record: dict[str, Any], target_version: str = APP_VERSION) -> bool:
    """Apply all migrations from the record's appVersion to target_version.

    Args:
        record: Persisted reel record, modified in place
        target_version: Version to migrate to (usually APP_VERSION)

    Returns:
        True if the record changed
    """
    current_v = _record_version(record)
    target_v = parse_version(target_version)

    if current_v >= target_v:
        return False

    versions_needed = sorted(
        [v for v in MIGRATIONS if current_v < parse_version(v) <= target_v],
        key=parse_version,
    )
    for version in versions_needed:
        MIGRATIONS[version](record)
        record["appVersion"] = version

    record["appVersion"] = target_version
    return True


def _record_version(record: dict[str, Any]) -> Version:
    """Version a record was written with, or the base version if unreadable."""
    stored = record.get("appVersion")
    if not stored:
        return parse_version(BASE_VERSION)
    try:
        return parse_version(stored)
    except (InvalidVersion, TypeError):
        logger.warning(
            f"Reel {record.get('id')} has unreadable appVersion {stored!r}, migrating from {BASE_VERSION}"
        )
        return parse_version(BASE_VERSION)


def migrate_records(
    records: list[dict[str, Any]], target_version: str = APP_VERSION
) -> int:
    """Migrate a list of persisted records in place.

    Args:
        records: Persisted reel records
        target_version: Version to migrate to

    Returns:
        Number of records that changed
    """
    changed = 0
    for record in records:
        if migrate_record(record, target_version):
            changed += 1
    if changed:
        logger.info(f"Migrated {changed} reel records to {target_version}")
    return changed
