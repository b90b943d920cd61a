from firebase_functions import scheduler_fn, https_fn
from firebase_functions.options import set_global_options
from firebase_admin import initialize_app
import firebase_admin
import json
import logging
import uuid

from rental_functions.constants import CLOUD_FUNCTION_BASE_URL, LOCAL_TIMEZONE, PAYMENT_TYPE_FULL, PAYMENT_TYPE_PARTIAL, PAYMENT_TYPE_PREPAID, PAID_IN_FULL_TOLERANCE
from rental_functions.logic.arrears_logic import (
    classify_payment,
    compute_gas_charge,
    get_paid_so_far,
    get_yearly_payment_grid,
    is_month_settled,
)
from rental_functions.logic.metrics_logic import build_dashboard_metrics, get_property_statuses
from rental_functions.services import backup_service
from rental_functions.services.db_service import (
    add_gas_reading,
    add_property,
    add_rent_payment,
    add_tenant,
    check_connection,
    close_tenant,
    get_gas_reading,
    get_owner_ids,
    get_payment,
    load_snapshot,
    mark_gas_paid,
    save_dashboard_metrics,
)
from rental_functions.services.receipt_service import generate_receipt_pdf, receipt_file_name
from rental_functions.services.storage_service import (
    download_from_storage,
    receipt_storage_path,
    upload_to_storage,
)
from rental_functions.utils.date_utils import first_of_month, local_today, parse_date
from rental_functions.utils.money_utils import to_amount
from rental_functions.utils.validators import (
    validate_address,
    validate_cedula,
    validate_email,
    validate_monthly_rent,
    validate_not_future_date,
    validate_phone,
    validate_property_name,
    validate_tenant_name,
)

# Set up a module-level logger
log = logging.getLogger(__name__)

try:
    firebase_admin.get_app()
except ValueError:
    initialize_app()
set_global_options(max_instances=1)

VALID_PAYMENT_TYPES = (PAYMENT_TYPE_FULL, PAYMENT_TYPE_PARTIAL, PAYMENT_TYPE_PREPAID)


def _json_response(payload, status: int = 200) -> https_fn.Response:
    return https_fn.Response(json.dumps(payload), status=status, headers={"Content-Type": "application/json"})


@scheduler_fn.on_schedule(
    schedule="0 6 * * *",
    timezone=scheduler_fn.Timezone(LOCAL_TIMEZONE),
)
def refresh_dashboard_metrics(event: scheduler_fn.ScheduledEvent) -> None:
    """
    Recomputes the current-year dashboard metrics of every owner and stores them.
    """
    log.info("Starting scheduled dashboard metrics refresh.")
    today = local_today()

    owner_ids = get_owner_ids()
    if not owner_ids:
        log.info("No owners found in the database. Exiting.")
        return

    refreshed = 0
    for owner_id in owner_ids:
        try:
            snapshot = load_snapshot(owner_id)
            metrics = build_dashboard_metrics(snapshot, today.year, today)
            if save_dashboard_metrics(owner_id, metrics):
                refreshed += 1
            if metrics.alerts:
                log.warning(f"  - Owner {owner_id}: {len(metrics.alerts)} overdue alerts, total {metrics.overdue_amount:.2f}")
        except Exception as e:
            log.error(f"Error refreshing dashboard metrics for owner {owner_id}: {e}")

    log.info(f"Refreshed dashboard metrics for {refreshed} of {len(owner_ids)} owners.")


@https_fn.on_request()
def dashboard_metrics(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that returns the dashboard metrics of an owner for a year.
    Query parameters: owner_id, year (defaults to the current year).
    """
    owner_id = req.args.get('owner_id')
    if not owner_id:
        log.error("Missing owner_id query parameter for dashboard_metrics.")
        return https_fn.Response("Missing owner_id.", status=400)

    today = local_today()
    try:
        year = int(req.args.get('year', today.year))
    except (TypeError, ValueError):
        return https_fn.Response("Invalid year.", status=400)

    try:
        snapshot = load_snapshot(owner_id)
        metrics = build_dashboard_metrics(snapshot, year, today)
        return _json_response(metrics.model_dump(mode='json'))
    except Exception as e:
        log.error(f"Error computing dashboard metrics for owner {owner_id}: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def payment_status(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that returns the payment status of each of an owner's properties.
    """
    owner_id = req.args.get('owner_id')
    if not owner_id:
        log.error("Missing owner_id query parameter for payment_status.")
        return https_fn.Response("Missing owner_id.", status=400)

    try:
        snapshot = load_snapshot(owner_id)
        statuses = get_property_statuses(snapshot, local_today())
        return _json_response([status.model_dump(mode='json') for status in statuses])
    except Exception as e:
        log.error(f"Error computing payment status for owner {owner_id}: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def payment_grid(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that returns the 12 monthly payment cells of a property for a year.
    Query parameters: owner_id, property_id, year (defaults to the current year).
    """
    owner_id = req.args.get('owner_id')
    property_id = req.args.get('property_id')
    if not owner_id or not property_id:
        log.error("Missing owner_id or property_id query parameters for payment_grid.")
        return https_fn.Response("Missing identifiers.", status=400)

    today = local_today()
    try:
        year = int(req.args.get('year', today.year))
    except (TypeError, ValueError):
        return https_fn.Response("Invalid year.", status=400)

    try:
        snapshot = load_snapshot(owner_id)
        prop = snapshot.property_by_id(property_id)
        if not prop:
            return https_fn.Response("Property not found.", status=404)
        grid = get_yearly_payment_grid(prop, snapshot.payments, year, today)
        return _json_response([cell.model_dump(mode='json') for cell in grid])
    except Exception as e:
        log.error(f"Error computing payment grid for property {property_id}: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def register_property(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that registers a rental property.
    """
    data = req.get_json(silent=True)
    if not data or not data.get('owner_id'):
        log.error("Missing owner_id in register_property request.")
        return https_fn.Response("Missing owner_id.", status=400)

    owner_id = data['owner_id']
    name = data.get('name')
    address = data.get('address')
    for error in (validate_property_name(name), validate_address(address), validate_monthly_rent(data.get('monthly_rent'))):
        if error:
            return https_fn.Response(error, status=400)

    try:
        snapshot = load_snapshot(owner_id)
    except Exception as e:
        log.error(f"Error loading data for owner {owner_id} in register_property: {e}")
        return https_fn.Response("An error occurred.", status=500)

    name = str(name).strip()
    if any(p.name.strip().lower() == name.lower() for p in snapshot.properties):
        return https_fn.Response("Ya existe una propiedad con este nombre", status=409)

    prop = {
        'name': name,
        'address': str(address).strip(),
        'monthly_rent': to_amount(data.get('monthly_rent')),
        'bedrooms': int(to_amount(data.get('bedrooms')) or 1),
        'bathrooms': int(to_amount(data.get('bathrooms')) or 1),
    }
    property_id = add_property(owner_id, prop)
    if not property_id:
        return https_fn.Response("Failed to store property.", status=500)
    return _json_response({'id': property_id, **prop}, status=201)


@https_fn.on_request()
def assign_tenant(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that assigns a new tenant to a property.
    A tenant already living there is closed out as of today.
    """
    data = req.get_json(silent=True)
    if not data or not data.get('owner_id'):
        log.error("Missing owner_id in assign_tenant request.")
        return https_fn.Response("Missing owner_id.", status=400)
    if not data.get('property_id'):
        return https_fn.Response("Debe seleccionar una propiedad", status=400)

    owner_id = data['owner_id']
    property_id = data['property_id']
    today = local_today()
    errors = (
        validate_tenant_name(data.get('name')),
        validate_cedula(data.get('identity_number')),
        validate_phone(data.get('phone')),
        validate_email(data.get('email')),
        validate_not_future_date(data.get('start_date'), today),
    )
    for error in errors:
        if error:
            return https_fn.Response(error, status=400)

    try:
        snapshot = load_snapshot(owner_id)
    except Exception as e:
        log.error(f"Error loading data for owner {owner_id} in assign_tenant: {e}")
        return https_fn.Response("An error occurred.", status=500)

    if not snapshot.property_by_id(property_id):
        return https_fn.Response("Property not found.", status=404)

    current_tenant = snapshot.active_tenant_for(property_id)
    if current_tenant and not close_tenant(owner_id, current_tenant.id, today.isoformat()):
        return https_fn.Response("Failed to close the current tenant.", status=500)

    tenant = {
        'property_id': property_id,
        'name': str(data['name']).strip(),
        'identity_number': data['identity_number'],
        'phone': data['phone'],
        'email': str(data.get('email') or '').strip() or None,
        'start_date': parse_date(data['start_date']).isoformat(),
        'end_date': None,
    }
    tenant_id = add_tenant(owner_id, tenant)
    if not tenant_id:
        return https_fn.Response("Failed to store tenant.", status=500)

    log.info(f"Assigned tenant {tenant_id} to property {property_id} for owner {owner_id}")
    return _json_response({'id': tenant_id, **tenant}, status=201)


@https_fn.on_request()
def register_payment(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that registers a rent payment for a property's active tenant.
    The stored type, status and remaining balance are derived from the amounts.
    """
    data = req.get_json(silent=True)
    if not data:
        log.error("No data in request body.")
        return https_fn.Response("No data received", status=400)

    owner_id = data.get('owner_id')
    property_id = data.get('property_id')
    payment_month = parse_date(data.get('payment_month'))
    requested_type = data.get('payment_type', PAYMENT_TYPE_FULL)
    if not owner_id or not property_id or not payment_month:
        log.error("Missing owner_id, property_id or payment_month in register_payment request.")
        return https_fn.Response("Missing identifiers.", status=400)
    if requested_type not in VALID_PAYMENT_TYPES:
        return https_fn.Response(f"Invalid payment_type '{requested_type}'.", status=400)

    date_error = validate_not_future_date(data.get('payment_date'))
    if date_error:
        return https_fn.Response(date_error, status=400)

    amount_paid = to_amount(data.get('amount_paid'))
    if amount_paid <= 0:
        return https_fn.Response("El monto debe ser mayor a 0", status=400)

    try:
        snapshot = load_snapshot(owner_id)
    except Exception as e:
        log.error(f"Error loading data for owner {owner_id} in register_payment: {e}")
        return https_fn.Response("An error occurred.", status=500)

    prop = snapshot.property_by_id(property_id)
    if not prop:
        return https_fn.Response("Property not found.", status=404)
    tenant = snapshot.active_tenant_for(property_id)
    if not tenant:
        log.error(f"Property {property_id} has no active tenant. Cannot register payment.")
        return https_fn.Response("Property has no active tenant.", status=400)

    month = first_of_month(payment_month)
    if is_month_settled(prop, snapshot.payments, month):
        return https_fn.Response("Este mes ya está pagado completamente.", status=409)

    paid_so_far = get_paid_so_far(property_id, snapshot.payments, month)
    remaining = prop.monthly_rent - paid_so_far
    if amount_paid > remaining + PAID_IN_FULL_TOLERANCE and requested_type != PAYMENT_TYPE_PREPAID:
        return https_fn.Response(f"El monto excede la deuda restante ({remaining:.2f})", status=400)

    classification = classify_payment(prop.monthly_rent, paid_so_far, amount_paid, requested_type)
    payment = {
        'property_id': property_id,
        'tenant_id': tenant.id,
        'payment_month': month.isoformat(),
        'rent_amount': prop.monthly_rent,
        'amount_paid': classification.amount_paid,
        'remaining_balance': classification.remaining_balance,
        'payment_date': data.get('payment_date'),
        'payment_method': data.get('payment_method'),
        'payment_type': classification.payment_type,
        'payment_status': classification.payment_status,
        'reference': data.get('reference'),
        'notes': data.get('notes'),
    }

    payment_id = add_rent_payment(owner_id, payment)
    if not payment_id:
        return https_fn.Response("Failed to store payment.", status=500)

    log.info(f"Registered {classification.payment_type} payment {payment_id} for property {property_id}, month {month.isoformat()}")
    return _json_response({'id': payment_id, **payment}, status=201)


@https_fn.on_request()
def register_gas_reading(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that registers a gas meter reading and computes its cost
    from the property's previous reading.
    """
    data = req.get_json(silent=True)
    if not data:
        log.error("No data in request body.")
        return https_fn.Response("No data received", status=400)

    owner_id = data.get('owner_id')
    property_id = data.get('property_id')
    reading_date = parse_date(data.get('reading_date')) or local_today()
    if not owner_id or not property_id:
        return https_fn.Response("Debe seleccionar una propiedad.", status=400)

    current_reading = to_amount(data.get('current_reading'))
    price_per_unit = to_amount(data.get('price_per_unit'))
    if data.get('current_reading') in (None, '') or current_reading < 0:
        return https_fn.Response("La lectura debe ser un número válido mayor o igual a 0.", status=400)
    if price_per_unit <= 0:
        return https_fn.Response("El precio debe ser mayor a 0.", status=400)

    try:
        snapshot = load_snapshot(owner_id)
    except Exception as e:
        log.error(f"Error loading data for owner {owner_id} in register_gas_reading: {e}")
        return https_fn.Response("An error occurred.", status=500)

    readings = sorted(
        (r for r in snapshot.gas_readings if r.property_id == property_id),
        key=lambda r: r.reading_date,
    )
    last_reading = readings[-1] if readings else None

    if last_reading:
        if last_reading.reading_date >= reading_date:
            return https_fn.Response(
                f"Ya existe una lectura con fecha {last_reading.reading_date.isoformat()}.", status=400
            )
        if current_reading < last_reading.current_reading:
            return https_fn.Response("La lectura actual no puede ser menor a la anterior.", status=400)

    charge = compute_gas_charge(
        current_reading, last_reading.current_reading if last_reading else 0, price_per_unit
    )
    reading = {
        'property_id': property_id,
        'reading_date': reading_date.isoformat(),
        'current_reading': current_reading,
        'previous_reading': charge.previous_reading,
        'consumption_volume': charge.consumption_volume,
        'price_per_unit': price_per_unit,
        'total_cost': charge.total_cost,
        'paid': False,
        'notes': data.get('notes'),
    }

    reading_id = add_gas_reading(owner_id, reading)
    if not reading_id:
        return https_fn.Response("Failed to store gas reading.", status=500)
    return _json_response({'id': reading_id, **reading}, status=201)


@https_fn.on_request()
def pay_gas_reading(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that marks a gas reading as paid.
    """
    data = req.get_json(silent=True)
    if not data or not data.get('owner_id') or not data.get('reading_id'):
        log.error("Missing owner_id or reading_id in pay_gas_reading request.")
        return https_fn.Response("Missing identifiers.", status=400)

    owner_id = data['owner_id']
    reading_id = data['reading_id']
    try:
        reading = get_gas_reading(owner_id, reading_id)
    except Exception as e:
        log.error(f"Error reading gas reading {reading_id} for owner {owner_id}: {e}")
        return https_fn.Response("An error occurred.", status=500)
    if not reading:
        return https_fn.Response("Gas reading not found.", status=404)
    if reading.paid:
        return https_fn.Response("Esta lectura ya está pagada.", status=409)

    payment_date = data.get('payment_date') or local_today().isoformat()
    if mark_gas_paid(owner_id, reading_id, payment_date, data.get('payment_notes', '')):
        return https_fn.Response("Gas reading marked as paid.", status=200)
    return https_fn.Response("Failed to update gas reading.", status=500)


@https_fn.on_request()
def generate_receipt(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that generates a payment receipt, stores it, and returns the URL.
    """
    try:
        data = req.get_json(silent=True)
        if not data:
            log.error("No data in request body.")
            return https_fn.Response("No data received", status=400)

        owner_id = data.get("owner_id")
        payment_id = data.get("payment_id")
        if not owner_id or not payment_id:
            log.error("Missing owner_id or payment_id in request.")
            return https_fn.Response("Missing identifiers.", status=400)

        payment = get_payment(owner_id, payment_id)
        if not payment:
            return https_fn.Response("Payment not found.", status=404)

        snapshot = load_snapshot(owner_id)
        prop = snapshot.property_by_id(payment.property_id)
        tenant = next((t for t in snapshot.tenants if t.id == payment.tenant_id), None) \
            or snapshot.active_tenant_for(payment.property_id)
        if not prop or not tenant:
            log.error(f"Missing property or tenant for payment {payment_id}.")
            return https_fn.Response("Property or tenant not found.", status=404)

        # Generate a unique name for the receipt
        receipt_number = str(uuid.uuid4())
        pdf_bytes = generate_receipt_pdf(payment, prop, tenant)

        file_path = upload_to_storage(pdf_bytes, owner_id, receipt_number, receipt_file_name(payment, tenant))
        if file_path:
            receipt_url = f"{CLOUD_FUNCTION_BASE_URL}/get_receipt?owner_id={owner_id}&receipt_number={receipt_number}"
            return https_fn.Response(receipt_url, status=200)
        else:
            log.error("Failed to upload receipt.")
            return https_fn.Response("Failed to upload receipt.", status=500)

    except Exception as e:
        log.error(f"An unexpected error occurred in generate_receipt: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def get_receipt(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that streams a stored receipt PDF directly to the client.
    """
    owner_id = req.args.get('owner_id')
    receipt_number = req.args.get('receipt_number')

    if not owner_id or not receipt_number:
        log.error("Missing owner_id or receipt_number query parameters for get_receipt.")
        return https_fn.Response("Missing identifiers.", status=400)

    try:
        stored = download_from_storage(receipt_storage_path(owner_id, receipt_number))
        if stored is None:
            return https_fn.Response("Receipt file not found in storage.", status=404)

        pdf_content, content_disposition = stored
        headers = {"Content-Type": "application/pdf"}
        if content_disposition:
            headers["Content-Disposition"] = content_disposition

        log.info(f"Streaming receipt PDF for receipt {receipt_number} directly to client.")
        return https_fn.Response(pdf_content, headers=headers, status=200)

    except Exception as e:
        log.error(f"Error in get_receipt for receipt {receipt_number}: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def export_backup(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that returns a JSON backup of all of an owner's data.
    """
    owner_id = req.args.get('owner_id')
    if not owner_id:
        return https_fn.Response("Missing owner_id.", status=400)

    try:
        return _json_response(backup_service.export_backup(owner_id))
    except Exception as e:
        log.error(f"Error exporting backup for owner {owner_id}: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def import_backup(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that restores an owner's data from a JSON backup.
    Body: {"owner_id": ..., "backup": {...}}
    """
    data = req.get_json(silent=True)
    if not data or not data.get('owner_id'):
        return https_fn.Response("Missing owner_id.", status=400)

    owner_id = data['owner_id']
    try:
        backup_service.import_backup(owner_id, data.get('backup'))
        return https_fn.Response("Backup restored.", status=200)
    except backup_service.BackupVersionError as e:
        log.warning(f"Rejected backup for owner {owner_id}: {e}")
        return https_fn.Response("Versión de backup no compatible", status=400)
    except Exception as e:
        log.error(f"Error importing backup for owner {owner_id}: {e}")
        return https_fn.Response("An error occurred.", status=500)


@https_fn.on_request()
def health(req: https_fn.Request) -> https_fn.Response:
    """
    HTTP-triggered function that reports whether the Realtime Database is reachable.
    """
    if check_connection():
        return https_fn.Response("OK", status=200)
    return https_fn.Response("Realtime Database unreachable.", status=503)
