import os

# Realtime Database layout: /Rentals/{owner_id}/{collection}/{record_id}
RENTALS_PATH = os.environ.get('RENTALS_PATH', '/Rentals')
PROPERTIES_NODE = 'properties'
TENANTS_NODE = 'tenants'
RENT_PAYMENTS_NODE = 'rent_payments'
GAS_READINGS_NODE = 'gas_consumption'
DASHBOARD_NODE = 'dashboard'

CLOUD_FUNCTION_BASE_URL = os.environ.get(
    'CLOUD_FUNCTION_BASE_URL', 'https://us-central1-rental-dashboard.cloudfunctions.net'
)
CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', 'RD$')
# "Today" is the landlord's calendar date, not the server's UTC date
LOCAL_TIMEZONE = os.environ.get('LOCAL_TIMEZONE', 'America/Santo_Domingo')

BACKUP_VERSION = "1.0"

# Payment types
PAYMENT_TYPE_FULL = 'full'
PAYMENT_TYPE_PARTIAL = 'partial'
PAYMENT_TYPE_PREPAID = 'prepaid'

# Payment statuses
PAYMENT_STATUS_PAID = 'paid'
PAYMENT_STATUS_PARTIAL = 'partial'
PAYMENT_STATUS_PENDING = 'pending'

PAYMENT_METHOD_LABELS = {
    'transfer': 'Transferencia Bancaria',
    'cash': 'Efectivo',
    'check': 'Cheque',
    'other': 'Otro',
}

PAYMENT_TYPE_LABELS = {
    PAYMENT_TYPE_FULL: 'Pago Completo',
    PAYMENT_TYPE_PARTIAL: 'Pago Parcial',
    PAYMENT_TYPE_PREPAID: 'Pago + Abono',
}

# A month counts as paid when the total is within this many currency units of the rent
PAID_IN_FULL_TOLERANCE = 1

# Property payment status codes
STATUS_NO_TENANT = 'NO_TENANT'
STATUS_CURRENT = 'CURRENT'
STATUS_LATE_1 = 'LATE_1'
STATUS_LATE_MULTI = 'LATE_MULTI'

# Yearly grid cell statuses
MONTH_PAID = 'PAID'
MONTH_PARTIAL = 'PARTIAL'
MONTH_PENDING = 'PENDING'
MONTH_FUTURE = 'FUTURE'

MONTH_STATUS_LABELS = {
    MONTH_PAID: 'Pagado',
    MONTH_PARTIAL: 'Parcial',
    MONTH_PENDING: 'Pendiente',
    MONTH_FUTURE: 'Futuro',
}

# Alert types
ALERT_ERROR = 'error'
ALERT_WARNING = 'warning'
