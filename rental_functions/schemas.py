"""
Pydantic schemas for the records read from the Realtime Database and the
view models returned by the arrears and metrics logic.

Records are validated once, at the data-access edge, so the logic modules can
assume well-typed, non-null values. Monetary and meter fields are coerced to
0.0 when they are missing or malformed.
"""
import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rental_functions.constants import (
    ALERT_ERROR,
    BACKUP_VERSION,
    GAS_READINGS_NODE,
    PAYMENT_STATUS_PENDING,
    PROPERTIES_NODE,
    RENT_PAYMENTS_NODE,
    TENANTS_NODE,
)
from rental_functions.utils.date_utils import parse_date
from rental_functions.utils.money_utils import to_amount

log = logging.getLogger(__name__)


def _optional_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra='ignore', coerce_numbers_to_str=True)


class Property(Record):
    id: str
    name: str = ''
    address: str = ''
    monthly_rent: float = 0.0
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None

    @field_validator('monthly_rent', mode='before')
    @classmethod
    def coerce_rent(cls, value):
        return to_amount(value)

    @field_validator('bedrooms', 'bathrooms', mode='before')
    @classmethod
    def coerce_rooms(cls, value):
        return _optional_int(value)


class Tenant(Record):
    id: str
    property_id: str
    name: str = ''
    identity_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_dates(cls, value):
        return parse_date(value)

    @property
    def is_active(self) -> bool:
        return self.end_date is None


class RentPayment(Record):
    id: str
    property_id: str
    tenant_id: Optional[str] = None
    payment_month: date  # first day of the rent period owed, not the pay date
    rent_amount: float = 0.0
    amount_paid: float = 0.0
    remaining_balance: float = 0.0
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    payment_type: Optional[str] = None
    payment_status: str = PAYMENT_STATUS_PENDING
    reference: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('rent_amount', 'amount_paid', 'remaining_balance', mode='before')
    @classmethod
    def coerce_amounts(cls, value):
        return to_amount(value)

    @field_validator('payment_month', 'payment_date', mode='before')
    @classmethod
    def parse_dates(cls, value):
        return parse_date(value)


class GasReading(Record):
    id: str
    property_id: str
    reading_date: date
    current_reading: float = 0.0
    previous_reading: float = 0.0
    consumption_volume: float = 0.0
    price_per_unit: float = 0.0
    total_cost: float = 0.0
    paid: bool = False
    payment_date: Optional[date] = None
    payment_notes: Optional[str] = None
    notes: Optional[str] = None

    @field_validator(
        'current_reading', 'previous_reading', 'consumption_volume',
        'price_per_unit', 'total_cost', mode='before'
    )
    @classmethod
    def coerce_numbers(cls, value):
        return to_amount(value)

    @field_validator('reading_date', 'payment_date', mode='before')
    @classmethod
    def parse_dates(cls, value):
        return parse_date(value)

    @field_validator('paid', mode='before')
    @classmethod
    def coerce_paid(cls, value):
        if isinstance(value, str):
            return value.strip().lower() in ('true', '1', 'yes')
        return bool(value)


def _iter_raw_records(raw) -> list[dict]:
    """Firebase returns either a list or an id-keyed dict for a node; missing nodes are None."""
    if not raw:
        return []
    if isinstance(raw, dict):
        records = []
        for key, value in raw.items():
            if isinstance(value, dict):
                records.append({'id': key, **value})
        return records
    return [value for value in raw if isinstance(value, dict)]


def parse_records(model: type[Record], raw) -> tuple:
    """Validates every record of a node, skipping (and logging) the ones that fail."""
    parsed = []
    for record in _iter_raw_records(raw):
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            log.warning(f"Skipping invalid {model.__name__} record {record.get('id')}: {e.error_count()} error(s)")
    return tuple(parsed)


class Snapshot(BaseModel):
    """Immutable view of one owner's data, handed to the logic modules as a whole."""
    model_config = ConfigDict(frozen=True)

    properties: tuple[Property, ...] = ()
    tenants: tuple[Tenant, ...] = ()
    payments: tuple[RentPayment, ...] = ()
    gas_readings: tuple[GasReading, ...] = ()

    @classmethod
    def from_raw(cls, raw: dict | None) -> 'Snapshot':
        raw = raw or {}
        return cls(
            properties=parse_records(Property, raw.get(PROPERTIES_NODE)),
            tenants=parse_records(Tenant, raw.get(TENANTS_NODE)),
            payments=parse_records(RentPayment, raw.get(RENT_PAYMENTS_NODE)),
            gas_readings=parse_records(GasReading, raw.get(GAS_READINGS_NODE)),
        )

    def active_tenant_for(self, property_id: str) -> Optional[Tenant]:
        return next(
            (t for t in self.tenants if t.property_id == property_id and t.is_active),
            None,
        )

    def property_by_id(self, property_id: str) -> Optional[Property]:
        return next((p for p in self.properties if p.id == property_id), None)


# --- View models ---

class PaymentStatus(BaseModel):
    status: str
    color: str
    emoji: str
    label: str
    months_overdue: int = 0


class PropertyStatus(BaseModel):
    property_id: str
    property_name: str
    tenant_name: Optional[str] = None
    payment_status: PaymentStatus


class MonthStatus(BaseModel):
    year: int
    month: int
    status: str
    label: str
    total_paid: float = 0.0


class Alert(BaseModel):
    id: str
    type: str = ALERT_ERROR
    title: str
    subtitle: str
    amount: float = 0.0
    property_id: Optional[str] = None
    tenant_id: Optional[str] = None
    month: str = ''
    is_gas: bool = False


class PaymentClassification(BaseModel):
    payment_type: str
    payment_status: str
    amount_paid: float
    remaining_balance: float


class GasCharge(BaseModel):
    previous_reading: float
    consumption_volume: float
    total_cost: float


class DashboardMetrics(BaseModel):
    year: int
    total_revenue: float = 0.0
    income: float = 0.0
    pending: float = 0.0
    expected_income: float = 0.0
    collection_rate: int = 0
    payment_collection_rate: int = 0
    occupancy_rate: int = 0
    projected_income: float = 0.0
    overdue_amount: float = 0.0
    alerts: list[Alert] = Field(default_factory=list)
    property_statuses: list[PropertyStatus] = Field(default_factory=list)


class Backup(BaseModel):
    version: str = BACKUP_VERSION
    exported_at: str
    data: dict[str, list[dict]]
