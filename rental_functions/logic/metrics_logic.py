from datetime import date
from typing import Iterable
import logging

from rental_functions.constants import (
    ALERT_ERROR,
    ALERT_WARNING,
    CURRENCY_SYMBOL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
    PAYMENT_TYPE_FULL,
)
from rental_functions.logic.arrears_logic import get_payment_status
from rental_functions.schemas import (
    Alert,
    DashboardMetrics,
    GasReading,
    Property,
    PropertyStatus,
    RentPayment,
    Snapshot,
    Tenant,
)
from rental_functions.utils.date_utils import first_of_month, format_month_label, is_same_month, iter_months, local_today
from rental_functions.utils.money_utils import format_quantity, round_half_up, to_amount

# Set up a module-level logger
log = logging.getLogger(__name__)


def _active_tenants(tenants: Iterable[Tenant]) -> list[Tenant]:
    return [tenant for tenant in (tenants or ()) if tenant.is_active]


def get_yearly_income(payments: Iterable[RentPayment], year: int) -> float:
    """Total received for rent periods of `year` on payments marked 'paid'."""
    return sum(
        to_amount(payment.amount_paid)
        for payment in (payments or ())
        if payment.payment_month.year == year and payment.payment_status == PAYMENT_STATUS_PAID
    )


def get_yearly_pending(payments: Iterable[RentPayment], year: int) -> float:
    """Outstanding balance of pending or partial payments for rent periods of `year`."""
    return sum(
        to_amount(payment.remaining_balance)
        for payment in (payments or ())
        if payment.payment_month.year == year
        and payment.payment_status in (PAYMENT_STATUS_PENDING, PAYMENT_STATUS_PARTIAL)
    )


def get_total_revenue(payments: Iterable[RentPayment], year: int) -> float:
    """Everything received for rent periods of `year`, whatever the payment status."""
    return sum(
        to_amount(payment.amount_paid)
        for payment in (payments or ())
        if payment.payment_month.year == year
    )


def get_expected_yearly_income(properties: Iterable[Property], tenants: Iterable[Tenant], year: int, today: date = None) -> float:
    """
    Twelve months of rent for every property occupied at any point of `year`.
    Partial-year occupancy is not prorated.
    """
    today = today or local_today()
    tenants = tuple(tenants or ())
    year_start = date(year, 1, 1)
    year_end = date(year, 12, 31)

    total = 0.0
    for prop in properties or ():
        occupied = any(
            tenant.property_id == prop.id
            and tenant.start_date <= year_end
            and (tenant.end_date or today) >= year_start
            for tenant in tenants
        )
        if occupied:
            total += to_amount(prop.monthly_rent) * 12
    return total


def get_collection_rate(income, expected) -> int:
    expected = to_amount(expected)
    if expected == 0:
        return 0
    return round_half_up(to_amount(income) / expected * 100)


def get_payment_collection_rate(tenants: Iterable[Tenant], payments: Iterable[RentPayment], today: date = None) -> int:
    """
    Share of the full payments expected so far this year that were received:
    one per active tenant for every elapsed month, current month included.
    """
    today = today or local_today()
    expected_payments = len(_active_tenants(tenants)) * today.month
    if expected_payments == 0:
        return 100

    received = sum(
        1 for payment in (payments or ())
        if payment.payment_month.year == today.year and payment.payment_type == PAYMENT_TYPE_FULL
    )
    return round_half_up(received / expected_payments * 100)


def get_occupancy_rate(properties: Iterable[Property], tenants: Iterable[Tenant]) -> int:
    total_properties = len(tuple(properties or ()))
    if total_properties == 0:
        return 0
    return round_half_up(len(_active_tenants(tenants)) / total_properties * 100)


def get_projected_income(properties: Iterable[Property], tenants: Iterable[Tenant], payments: Iterable[RentPayment], year: int, today: date = None) -> float:
    """Received + pending + the rent still to be invoiced to current tenants this year."""
    today = today or local_today()
    payments = tuple(payments or ())
    active_property_ids = {tenant.property_id for tenant in _active_tenants(tenants)}
    if year == today.year:
        months_remaining = 12 - today.month
    else:
        months_remaining = 12 if year > today.year else 0

    future_invoiced = sum(
        to_amount(prop.monthly_rent) * months_remaining
        for prop in (properties or ())
        if prop.id in active_property_ids
    )
    return get_yearly_income(payments, year) + get_yearly_pending(payments, year) + future_invoiced


def _rent_overdue_alerts(properties: tuple, tenants: tuple, payments: tuple, today: date) -> list[Alert]:
    properties_by_id = {prop.id: prop for prop in properties}
    alerts = []

    for tenant in _active_tenants(tenants):
        prop = properties_by_id.get(tenant.property_id)
        if not prop:
            log.warning(f"Active tenant {tenant.id} points to unknown property {tenant.property_id}")
            continue

        rent_amount = to_amount(prop.monthly_rent)
        # Only fully elapsed months can be overdue
        for month in iter_months(tenant.start_date, today):
            has_full_payment = any(
                payment.property_id == prop.id
                and is_same_month(payment.payment_month, month)
                and payment.payment_type == PAYMENT_TYPE_FULL
                for payment in payments
            )
            if has_full_payment:
                continue

            month_label = format_month_label(month)
            alerts.append(Alert(
                id=f"overdue-{prop.id}-{month.year}-{month.month}",
                type=ALERT_ERROR,
                title=f"Pago Atrasado - {prop.name}",
                subtitle=f"{tenant.name} - {month_label} - {CURRENCY_SYMBOL}{rent_amount:.2f}",
                amount=rent_amount,
                property_id=prop.id,
                tenant_id=tenant.id,
                month=month_label,
            ))
    return alerts


def _gas_overdue_alerts(properties: tuple, gas_readings: tuple, today: date) -> list[Alert]:
    properties_by_id = {prop.id: prop for prop in properties}
    current_month = first_of_month(today)
    alerts = []

    for reading in gas_readings:
        # Readings from the current month are never overdue, paid or not
        if reading.paid or first_of_month(reading.reading_date) >= current_month:
            continue

        prop = properties_by_id.get(reading.property_id)
        property_name = prop.name if prop else 'Propiedad'
        gas_amount = to_amount(reading.total_cost)
        month_label = format_month_label(reading.reading_date)
        alerts.append(Alert(
            id=f"gas-{reading.id}",
            type=ALERT_WARNING,
            title=f"Gas Atrasado - {property_name}",
            subtitle=f"{month_label} - {format_quantity(reading.consumption_volume)}m³ - {CURRENCY_SYMBOL}{gas_amount:.2f}",
            amount=gas_amount,
            property_id=reading.property_id,
            month=month_label,
            is_gas=True,
        ))
    return alerts


def get_overdue_alerts(
    properties: Iterable[Property],
    tenants: Iterable[Tenant],
    payments: Iterable[RentPayment],
    gas_readings: Iterable[GasReading],
    today: date = None,
) -> list[Alert]:
    """
    Builds the notification feed of overdue items as of `today`:
    - one 'error' alert per active tenant's past month without a full rent payment
    - one 'warning' alert per unpaid gas reading from a previous month
    """
    today = today or local_today()
    properties = tuple(properties or ())
    rent_alerts = _rent_overdue_alerts(properties, tuple(tenants or ()), tuple(payments or ()), today)
    gas_alerts = _gas_overdue_alerts(properties, tuple(gas_readings or ()), today)
    return rent_alerts + gas_alerts


def get_overdue_amount(alerts: Iterable[Alert]) -> float:
    return sum(to_amount(alert.amount) for alert in (alerts or ()))


def get_property_statuses(snapshot: Snapshot, today: date = None) -> list[PropertyStatus]:
    today = today or local_today()
    statuses = []
    for prop in snapshot.properties:
        tenant = snapshot.active_tenant_for(prop.id)
        property_payments = [p for p in snapshot.payments if p.property_id == prop.id]
        statuses.append(PropertyStatus(
            property_id=prop.id,
            property_name=prop.name,
            tenant_name=tenant.name if tenant else None,
            payment_status=get_payment_status(prop, tenant, property_payments, today),
        ))
    return statuses


def build_dashboard_metrics(snapshot: Snapshot, year: int = None, today: date = None) -> DashboardMetrics:
    """
    Assembles every dashboard figure for `year` from one snapshot.
    Overdue alerts describe the present, so they are only produced for the current year.
    """
    today = today or local_today()
    year = year or today.year

    income = get_yearly_income(snapshot.payments, year)
    pending = get_yearly_pending(snapshot.payments, year)
    expected = get_expected_yearly_income(snapshot.properties, snapshot.tenants, year, today)

    alerts = []
    payment_collection_rate = get_collection_rate(income, expected)
    if year == today.year:
        alerts = get_overdue_alerts(
            snapshot.properties, snapshot.tenants, snapshot.payments, snapshot.gas_readings, today
        )
        payment_collection_rate = get_payment_collection_rate(snapshot.tenants, snapshot.payments, today)

    metrics = DashboardMetrics(
        year=year,
        total_revenue=get_total_revenue(snapshot.payments, year),
        income=income,
        pending=pending,
        expected_income=expected,
        collection_rate=get_collection_rate(income, expected),
        payment_collection_rate=payment_collection_rate,
        occupancy_rate=get_occupancy_rate(snapshot.properties, snapshot.tenants),
        projected_income=get_projected_income(
            snapshot.properties, snapshot.tenants, snapshot.payments, year, today
        ),
        overdue_amount=get_overdue_amount(alerts),
        alerts=alerts,
        property_statuses=get_property_statuses(snapshot, today),
    )
    log.info(f"Built dashboard metrics for {year}: {len(alerts)} alerts, occupancy {metrics.occupancy_rate}%")
    return metrics
