# rental_functions/services/db_service.py

import firebase_admin.db as db
import logging

from rental_functions.constants import (
    DASHBOARD_NODE,
    GAS_READINGS_NODE,
    PROPERTIES_NODE,
    RENT_PAYMENTS_NODE,
    RENTALS_PATH,
    TENANTS_NODE,
)
from rental_functions.schemas import (
    DashboardMetrics,
    GasReading,
    RentPayment,
    Snapshot,
    parse_records,
)

log = logging.getLogger(__name__)

COLLECTION_NODES = (PROPERTIES_NODE, TENANTS_NODE, RENT_PAYMENTS_NODE, GAS_READINGS_NODE)


def _owner_path(owner_id: str, *parts: str) -> str:
    return "/".join([RENTALS_PATH.rstrip("/"), owner_id, *parts])


def get_raw_collection(owner_id: str, node: str) -> dict:
    """
    Gets one of an owner's collections from the Firebase Realtime Database.
    """
    ref = db.reference(_owner_path(owner_id, node))
    data = ref.get()
    return data if data else {}


def get_owner_ids() -> list:
    """
    Gets the ids of every owner with data under the rentals root.
    """
    ref = db.reference(RENTALS_PATH)
    owners = ref.get(shallow=True)
    return list(owners.keys()) if owners else []


def load_snapshot(owner_id: str) -> Snapshot:
    """
    Reads all four collections of an owner and validates them into a Snapshot.
    """
    raw = {node: get_raw_collection(owner_id, node) for node in COLLECTION_NODES}
    snapshot = Snapshot.from_raw(raw)
    log.info(
        f"Loaded snapshot for owner {owner_id}: {len(snapshot.properties)} properties, "
        f"{len(snapshot.tenants)} tenants, {len(snapshot.payments)} payments, "
        f"{len(snapshot.gas_readings)} gas readings"
    )
    return snapshot


def get_payment(owner_id: str, payment_id: str) -> RentPayment | None:
    ref = db.reference(_owner_path(owner_id, RENT_PAYMENTS_NODE, payment_id))
    data = ref.get()
    if not data:
        return None
    records = parse_records(RentPayment, {payment_id: data})
    return records[0] if records else None


def get_gas_reading(owner_id: str, reading_id: str) -> GasReading | None:
    ref = db.reference(_owner_path(owner_id, GAS_READINGS_NODE, reading_id))
    data = ref.get()
    if not data:
        return None
    records = parse_records(GasReading, {reading_id: data})
    return records[0] if records else None


def _push_record(owner_id: str, node: str, record: dict) -> str | None:
    try:
        new_ref = db.reference(_owner_path(owner_id, node)).push()
        new_ref.set({**record, 'id': new_ref.key})
        log.info(f"Stored {node} record {new_ref.key} for owner {owner_id}")
        return new_ref.key
    except Exception as e:
        log.error(f"Error storing {node} record for owner {owner_id}: {e}")
        return None


def add_property(owner_id: str, prop: dict) -> str | None:
    return _push_record(owner_id, PROPERTIES_NODE, prop)


def add_tenant(owner_id: str, tenant: dict) -> str | None:
    return _push_record(owner_id, TENANTS_NODE, tenant)


def close_tenant(owner_id: str, tenant_id: str, end_date: str) -> bool:
    """
    Ends a tenancy by setting the tenant's end date.
    """
    try:
        db.reference(_owner_path(owner_id, TENANTS_NODE, tenant_id)).update({'end_date': end_date})
        log.info(f"Closed tenant {tenant_id} for owner {owner_id} on {end_date}")
        return True
    except Exception as e:
        log.error(f"Error closing tenant {tenant_id} for owner {owner_id}: {e}")
        return False


def add_rent_payment(owner_id: str, payment: dict) -> str | None:
    """
    Stores a new rent payment and returns its generated id, or None on failure.
    """
    return _push_record(owner_id, RENT_PAYMENTS_NODE, payment)


def add_gas_reading(owner_id: str, reading: dict) -> str | None:
    return _push_record(owner_id, GAS_READINGS_NODE, reading)


def mark_gas_paid(owner_id: str, reading_id: str, payment_date: str, payment_notes: str = '') -> bool:
    """
    Marks a gas reading as paid.
    """
    try:
        ref = db.reference(_owner_path(owner_id, GAS_READINGS_NODE, reading_id))
        ref.update({
            'paid': True,
            'payment_date': payment_date,
            'payment_notes': payment_notes,
        })
        log.info(f"Marked gas reading {reading_id} as paid for owner {owner_id}")
        return True
    except Exception as e:
        log.error(f"Error marking gas reading {reading_id} as paid for owner {owner_id}: {e}")
        return False


def save_dashboard_metrics(owner_id: str, metrics: DashboardMetrics) -> bool:
    """
    Writes the computed dashboard summary under /Rentals/{owner_id}/dashboard/{year}.
    """
    try:
        ref = db.reference(_owner_path(owner_id, DASHBOARD_NODE, str(metrics.year)))
        ref.set(metrics.model_dump(mode='json'))
        log.info(f"Saved dashboard metrics for owner {owner_id}, year {metrics.year}")
        return True
    except Exception as e:
        log.error(f"Error saving dashboard metrics for owner {owner_id}: {e}")
        return False


def replace_collection(owner_id: str, node: str, records: list) -> None:
    """
    Replaces an owner's collection with the given records, keyed by their ids.
    Errors propagate so a partial restore is visible to the caller.
    """
    ref = db.reference(_owner_path(owner_id, node))
    ref.set({str(record['id']): record for record in records if record.get('id') is not None})


def check_connection() -> bool:
    """
    Tests Realtime Database connectivity with a shallow read of the rentals root.
    """
    try:
        db.reference(RENTALS_PATH).get(shallow=True)
        log.info("Realtime Database connection successful.")
        return True
    except Exception as e:
        log.error(f"Realtime Database connection failed: {e}")
        return False
