from datetime import date
from typing import Iterable, Optional

from rental_functions.constants import (
    MONTH_FUTURE,
    MONTH_PAID,
    MONTH_PARTIAL,
    MONTH_PENDING,
    MONTH_STATUS_LABELS,
    PAID_IN_FULL_TOLERANCE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_TYPE_FULL,
    PAYMENT_TYPE_PARTIAL,
    PAYMENT_TYPE_PREPAID,
    STATUS_CURRENT,
    STATUS_LATE_1,
    STATUS_LATE_MULTI,
    STATUS_NO_TENANT,
)
from rental_functions.schemas import (
    GasCharge,
    MonthStatus,
    PaymentClassification,
    PaymentStatus,
    Property,
    RentPayment,
    Tenant,
)
from rental_functions.utils.date_utils import add_months, first_of_month, is_same_month, local_today
from rental_functions.utils.money_utils import to_amount

# Rent for month M is paid during month M+1 (February pays for January).
PAYMENT_LAG_MONTHS = 1


def _no_tenant_status() -> PaymentStatus:
    return PaymentStatus(status=STATUS_NO_TENANT, color='gray', emoji='⚫', label='Sin inquilino')


def _current_status() -> PaymentStatus:
    return PaymentStatus(status=STATUS_CURRENT, color='green', emoji='🟢', label='Al día')


def get_expected_payment_month(today: date) -> date:
    """The rent period whose payment is due by `today`."""
    return add_months(first_of_month(today), -PAYMENT_LAG_MONTHS)


def _has_paid_month(property_id: str, payments: Iterable[RentPayment], month: date) -> bool:
    return any(
        payment.property_id == property_id
        and first_of_month(payment.payment_month) == month
        and payment.payment_status == PAYMENT_STATUS_PAID
        for payment in payments
    )


def count_months_overdue(prop: Property, tenant: Tenant, payments: Iterable[RentPayment], today: date = None) -> int:
    """
    Counts consecutive unpaid months ending at the expected payment month.
    Walks backwards until a paid month is found or the tenant's start month is passed.
    """
    today = today or local_today()
    payments = tuple(payments or ())
    tenant_start_month = first_of_month(tenant.start_date)

    count = 0
    check_month = get_expected_payment_month(today)
    while check_month >= tenant_start_month:
        if _has_paid_month(prop.id, payments, check_month):
            break
        count += 1
        check_month = add_months(check_month, -1)
    return count


def get_payment_status(prop: Property, active_tenant: Optional[Tenant], payments: Iterable[RentPayment], today: date = None) -> PaymentStatus:
    """
    Traffic-light payment status of a property:
    - gray: no active tenant
    - green: expected month paid (or nothing owed yet)
    - yellow: 1 month overdue
    - red: 2+ months overdue
    """
    if not active_tenant:
        return _no_tenant_status()

    today = today or local_today()
    payments = tuple(payments or ())

    if _has_paid_month(prop.id, payments, get_expected_payment_month(today)):
        return _current_status()

    months_overdue = count_months_overdue(prop, active_tenant, payments, today)

    if months_overdue == 1:
        return PaymentStatus(
            status=STATUS_LATE_1, color='yellow', emoji='🟡',
            label='1 mes atrasado', months_overdue=1
        )
    if months_overdue >= 2:
        return PaymentStatus(
            status=STATUS_LATE_MULTI, color='red', emoji='🔴',
            label=f'{months_overdue} meses atrasados', months_overdue=months_overdue
        )

    # A tenant who started after the expected month owes nothing yet
    return _current_status()


def is_paid_in_full(month_payments: Iterable[RentPayment], monthly_rent) -> bool:
    """
    A month is paid in full when any payment was recorded as 'full', or when the
    amounts paid add up to the rent within PAID_IN_FULL_TOLERANCE.
    """
    month_payments = tuple(month_payments or ())
    if any(payment.payment_type == PAYMENT_TYPE_FULL for payment in month_payments):
        return True
    total_paid = sum(to_amount(payment.amount_paid) for payment in month_payments)
    return total_paid >= to_amount(monthly_rent) - PAID_IN_FULL_TOLERANCE


def get_month_status(prop: Property, payments: Iterable[RentPayment], year: int, month: int, today: date = None) -> MonthStatus:
    """Status of one month cell of a property's yearly payment grid."""
    today = today or local_today()
    target = date(year, month, 1)

    # Zero-amount rows are placeholders and don't count as payments
    month_payments = [
        payment for payment in (payments or ())
        if payment.property_id == prop.id
        and is_same_month(payment.payment_month, target)
        and to_amount(payment.amount_paid) != 0
    ]

    if month_payments:
        total_paid = sum(payment.amount_paid for payment in month_payments)
        status = MONTH_PAID if is_paid_in_full(month_payments, prop.monthly_rent) else MONTH_PARTIAL
        return MonthStatus(
            year=year, month=month, status=status,
            label=MONTH_STATUS_LABELS[status], total_paid=total_paid
        )

    if year > today.year or (year == today.year and month > today.month):
        status = MONTH_FUTURE
    else:
        status = MONTH_PENDING
    return MonthStatus(year=year, month=month, status=status, label=MONTH_STATUS_LABELS[status])


def get_yearly_payment_grid(prop: Property, payments: Iterable[RentPayment], year: int, today: date = None) -> list[MonthStatus]:
    payments = tuple(payments or ())
    return [get_month_status(prop, payments, year, month, today) for month in range(1, 13)]


def get_paid_so_far(property_id: str, payments: Iterable[RentPayment], month: date) -> float:
    """Total already paid towards a property's rent for the given month."""
    return sum(
        to_amount(payment.amount_paid)
        for payment in (payments or ())
        if payment.property_id == property_id and is_same_month(payment.payment_month, month)
    )


def is_month_settled(prop: Property, payments: Iterable[RentPayment], month: date) -> bool:
    """True when a month is already fully paid and no further payment should be registered."""
    month_payments = [
        payment for payment in (payments or ())
        if payment.property_id == prop.id and is_same_month(payment.payment_month, month)
    ]
    if not month_payments:
        return False
    if any(p.payment_status == PAYMENT_STATUS_PAID and p.payment_type == PAYMENT_TYPE_FULL for p in month_payments):
        return True
    return get_paid_so_far(prop.id, month_payments, month) >= prop.monthly_rent - PAID_IN_FULL_TOLERANCE


def classify_payment(monthly_rent, paid_so_far, amount_paid, requested_type: str) -> PaymentClassification:
    """
    Derives the stored type, status and remaining balance of a new rent payment.
    The type is decided by the amounts, not only by what was requested: a partial
    payment that completes the month is stored as 'full'.
    """
    rent = to_amount(monthly_rent)
    paid_so_far = to_amount(paid_so_far)
    amount_paid = to_amount(amount_paid)

    if requested_type == PAYMENT_TYPE_PREPAID:
        # Settles whatever is left of the month
        return PaymentClassification(
            payment_type=PAYMENT_TYPE_FULL,
            payment_status=PAYMENT_STATUS_PAID,
            amount_paid=max(0.0, rent - paid_so_far),
            remaining_balance=0.0,
        )

    is_closing = (paid_so_far + amount_paid) >= (rent - PAID_IN_FULL_TOLERANCE)
    payment_type = PAYMENT_TYPE_FULL if requested_type == PAYMENT_TYPE_FULL or is_closing else PAYMENT_TYPE_PARTIAL
    return PaymentClassification(
        payment_type=payment_type,
        payment_status=PAYMENT_STATUS_PAID if is_closing else PAYMENT_STATUS_PARTIAL,
        amount_paid=amount_paid,
        remaining_balance=max(0.0, rent - (paid_so_far + amount_paid)),
    )


def compute_gas_charge(current_reading, previous_reading, price_per_unit) -> GasCharge:
    previous = to_amount(previous_reading)
    consumption = max(0.0, to_amount(current_reading) - previous)
    return GasCharge(
        previous_reading=previous,
        consumption_volume=consumption,
        total_cost=consumption * to_amount(price_per_unit),
    )
