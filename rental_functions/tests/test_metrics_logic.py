import copy
import unittest
from datetime import date

from rental_functions.constants import STATUS_CURRENT, STATUS_LATE_MULTI, STATUS_NO_TENANT
from rental_functions.logic.metrics_logic import (
    build_dashboard_metrics,
    get_collection_rate,
    get_expected_yearly_income,
    get_occupancy_rate,
    get_overdue_alerts,
    get_overdue_amount,
    get_payment_collection_rate,
    get_projected_income,
    get_total_revenue,
    get_yearly_income,
    get_yearly_pending,
)
from rental_functions.schemas import GasReading, Property, RentPayment, Snapshot, Tenant
from rental_functions.tests.constants import RAW_SNAPSHOT

TODAY = date(2024, 6, 15)


class TestYearlyTotals(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.snapshot = Snapshot.from_raw(copy.deepcopy(RAW_SNAPSHOT))

    def test_yearly_income_counts_paid_only(self):
        self.assertEqual(get_yearly_income(self.snapshot.payments, 2024), 100000)
        self.assertEqual(get_yearly_income(self.snapshot.payments, 2023), 0)

    def test_yearly_pending_counts_pending_and_partial(self):
        payments = list(self.snapshot.payments) + [
            RentPayment(id="pending-1", property_id="prop-a", payment_month="2024-04-01",
                        remaining_balance=15000, payment_status="pending"),
        ]

        self.assertEqual(get_yearly_pending(payments, 2024), 25000)

    def test_income_and_pending_never_double_count(self):
        payments = [
            RentPayment(id="p1", property_id="x", payment_month="2024-01-01", amount_paid=100, remaining_balance=50, payment_status="paid"),
            RentPayment(id="p2", property_id="x", payment_month="2024-02-01", amount_paid=30, remaining_balance=70, payment_status="partial"),
            RentPayment(id="p3", property_id="x", payment_month="2024-03-01", amount_paid=0, remaining_balance=100, payment_status="pending"),
        ]

        # Each row contributes to exactly one side
        self.assertEqual(get_yearly_income(payments, 2024), 100)
        self.assertEqual(get_yearly_pending(payments, 2024), 170)

    def test_malformed_amounts_count_as_zero(self):
        payments = [
            RentPayment(id="p1", property_id="x", payment_month="2024-01-01", amount_paid="abc", payment_status="paid"),
            RentPayment(id="p2", property_id="x", payment_month="2024-02-01", amount_paid=None, payment_status="paid"),
            RentPayment(id="p3", property_id="x", payment_month="2024-03-01", amount_paid="1500.50", payment_status="paid"),
        ]

        self.assertEqual(get_yearly_income(payments, 2024), 1500.5)

    def test_total_revenue_ignores_status(self):
        self.assertEqual(get_total_revenue(self.snapshot.payments, 2024), 105000)

    def test_absent_collections_are_empty(self):
        self.assertEqual(get_yearly_income(None, 2024), 0)
        self.assertEqual(get_yearly_pending(None, 2024), 0)
        self.assertEqual(get_expected_yearly_income(None, None, 2024, TODAY), 0)
        self.assertEqual(get_overdue_alerts(None, None, None, None, TODAY), [])


class TestExpectedIncome(unittest.TestCase):

    def setUp(self):
        self.properties = [
            Property(id="p1", name="Uno", monthly_rent=10000),
            Property(id="p2", name="Dos", monthly_rent=20000),
            Property(id="p3", name="Tres", monthly_rent=30000),
        ]

    def test_any_overlap_counts_full_year(self):
        tenants = [
            # Moved in on the last day of the year: still a full year of rent
            Tenant(id="t1", property_id="p1", start_date="2024-12-31"),
            # Left on the first day of the year
            Tenant(id="t2", property_id="p2", start_date="2022-05-01", end_date="2024-01-01"),
            # Left the year before
            Tenant(id="t3", property_id="p3", start_date="2022-05-01", end_date="2023-12-31"),
        ]

        self.assertEqual(get_expected_yearly_income(self.properties, tenants, 2024, TODAY), 360000)

    def test_active_tenant_runs_until_today(self):
        tenants = [Tenant(id="t1", property_id="p1", start_date="2020-01-01")]

        self.assertEqual(get_expected_yearly_income(self.properties, tenants, 2023, TODAY), 120000)
        self.assertEqual(get_expected_yearly_income(self.properties, tenants, 2025, TODAY), 0)

    def test_property_counted_once_with_several_tenants(self):
        tenants = [
            Tenant(id="t1", property_id="p1", start_date="2024-01-01", end_date="2024-03-31"),
            Tenant(id="t2", property_id="p1", start_date="2024-05-01"),
        ]

        self.assertEqual(get_expected_yearly_income(self.properties, tenants, 2024, TODAY), 120000)


class TestRates(unittest.TestCase):

    def test_collection_rate(self):
        self.assertEqual(get_collection_rate(100000, 420000), 24)
        self.assertEqual(get_collection_rate(50, 200), 25)
        self.assertEqual(get_collection_rate(1, 8), 13)  # 12.5 rounds half up

    def test_collection_rate_without_expected_income(self):
        self.assertEqual(get_collection_rate(5000, 0), 0)
        self.assertEqual(get_collection_rate(0, 0), 0)

    def test_occupancy_rate(self):
        properties = [Property(id=f"p{i}") for i in range(3)]
        tenants = [
            Tenant(id="t1", property_id="p0", start_date="2024-01-01"),
            Tenant(id="t2", property_id="p1", start_date="2024-01-01"),
            Tenant(id="t3", property_id="p2", start_date="2023-01-01", end_date="2023-12-31"),
        ]

        self.assertEqual(get_occupancy_rate(properties, tenants), 67)
        self.assertEqual(get_occupancy_rate([], tenants), 0)

    def test_payment_collection_rate(self):
        snapshot = Snapshot.from_raw(copy.deepcopy(RAW_SNAPSHOT))

        # 5 full payments out of 2 active tenants x 6 months
        self.assertEqual(get_payment_collection_rate(snapshot.tenants, snapshot.payments, TODAY), 42)
        self.assertEqual(get_payment_collection_rate([], snapshot.payments, TODAY), 100)

    def test_projected_income(self):
        snapshot = Snapshot.from_raw(copy.deepcopy(RAW_SNAPSHOT))

        projected = get_projected_income(snapshot.properties, snapshot.tenants, snapshot.payments, 2024, TODAY)

        # 100000 received + 10000 pending + (15000 + 20000) x 6 remaining months
        self.assertEqual(projected, 320000)
        self.assertEqual(
            get_projected_income(snapshot.properties, snapshot.tenants, snapshot.payments, 2023, TODAY), 0
        )


class TestOverdueAlerts(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.snapshot = Snapshot.from_raw(copy.deepcopy(RAW_SNAPSHOT))

    def _alerts(self, today=TODAY):
        s = self.snapshot
        return get_overdue_alerts(s.properties, s.tenants, s.payments, s.gas_readings, today)

    def test_rent_alerts_for_each_elapsed_month_without_full_payment(self):
        rent_alerts = [a for a in self._alerts() if not a.is_gas]

        self.assertEqual(
            [a.id for a in rent_alerts],
            ["overdue-prop-a-2024-3", "overdue-prop-a-2024-4", "overdue-prop-a-2024-5"],
        )
        first = rent_alerts[0]
        self.assertEqual(first.type, "error")
        self.assertEqual(first.title, "Pago Atrasado - Apartamento A")
        self.assertEqual(first.subtitle, "Juan Pérez - marzo de 2024 - RD$15000.00")
        self.assertEqual(first.amount, 15000)
        self.assertEqual(first.tenant_id, "tenant-a")

    def test_current_month_is_never_overdue(self):
        alerts = self._alerts(today=date(2024, 3, 31))

        self.assertEqual([a.id for a in alerts if not a.is_gas], [])

    def test_gas_alerts_only_for_previous_months(self):
        gas_alerts = [a for a in self._alerts() if a.is_gas]

        self.assertEqual([a.id for a in gas_alerts], ["gas-gas-1"])
        self.assertEqual(gas_alerts[0].type, "warning")
        self.assertEqual(gas_alerts[0].title, "Gas Atrasado - Apartamento A")
        self.assertEqual(gas_alerts[0].amount, 850)
        self.assertEqual(gas_alerts[0].subtitle, "abril de 2024 - 20.5m³ - RD$850.00")

    def test_gas_volume_is_never_in_scientific_notation(self):
        readings = [
            GasReading(id="big", property_id="prop-a", reading_date="2024-04-02",
                       consumption_volume=1234567, total_cost=300, paid=False),
        ]

        alerts = get_overdue_alerts([], [], [], readings, TODAY)

        self.assertEqual(alerts[0].subtitle, "abril de 2024 - 1234567m³ - RD$300.00")

    def test_gas_from_two_months_ago_included_current_month_excluded(self):
        readings = [
            GasReading(id="old", property_id="prop-a", reading_date="2024-04-02", total_cost=300, paid=False),
            GasReading(id="new", property_id="prop-a", reading_date="2024-06-01", total_cost=400, paid=False),
        ]

        alerts = get_overdue_alerts([], [], [], readings, TODAY)

        self.assertEqual([a.id for a in alerts], ["gas-old"])
        self.assertEqual(alerts[0].title, "Gas Atrasado - Propiedad")

    def test_gas_from_previous_year_is_overdue(self):
        readings = [GasReading(id="dec", property_id="prop-a", reading_date="2023-12-28", total_cost=300)]

        alerts = get_overdue_alerts([], [], [], readings, date(2024, 1, 5))

        self.assertEqual(len(alerts), 1)

    def test_partial_type_payment_does_not_clear_rent_alert(self):
        alert_ids = [a.id for a in self._alerts()]

        # March has a partial payment only
        self.assertIn("overdue-prop-a-2024-3", alert_ids)

    def test_overdue_amount_matches_individual_sums(self):
        alerts = self._alerts()
        rent_sum = sum(a.amount for a in alerts if not a.is_gas)
        gas_sum = sum(a.amount for a in alerts if a.is_gas)

        self.assertEqual(rent_sum, 45000)
        self.assertEqual(gas_sum, 850)
        self.assertEqual(get_overdue_amount(alerts), rent_sum + gas_sum)

    def test_tenant_of_unknown_property_is_skipped(self):
        tenants = [Tenant(id="ghost", property_id="missing", start_date="2024-01-01")]

        with self.assertLogs('rental_functions.logic.metrics_logic', level='WARNING'):
            alerts = get_overdue_alerts(self.snapshot.properties, tenants, [], [], TODAY)
        self.assertEqual(alerts, [])


class TestDashboardMetrics(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.snapshot = Snapshot.from_raw(copy.deepcopy(RAW_SNAPSHOT))

    def test_current_year(self):
        metrics = build_dashboard_metrics(self.snapshot, 2024, TODAY)

        self.assertEqual(metrics.year, 2024)
        self.assertEqual(metrics.total_revenue, 105000)
        self.assertEqual(metrics.income, 100000)
        self.assertEqual(metrics.pending, 10000)
        self.assertEqual(metrics.expected_income, 420000)
        self.assertEqual(metrics.collection_rate, 24)
        self.assertEqual(metrics.payment_collection_rate, 42)
        self.assertEqual(metrics.occupancy_rate, 67)
        self.assertEqual(metrics.projected_income, 320000)
        self.assertEqual(len(metrics.alerts), 4)
        self.assertEqual(metrics.overdue_amount, 45850)

        statuses = {s.property_id: s.payment_status.status for s in metrics.property_statuses}
        self.assertEqual(statuses, {
            "prop-a": STATUS_LATE_MULTI,
            "prop-b": STATUS_CURRENT,
            "prop-c": STATUS_NO_TENANT,
        })

    def test_past_year_has_no_alerts(self):
        metrics = build_dashboard_metrics(self.snapshot, 2023, TODAY)

        self.assertEqual(metrics.alerts, [])
        self.assertEqual(metrics.overdue_amount, 0)
        self.assertEqual(metrics.income, 0)
        self.assertEqual(metrics.collection_rate, 0)
        self.assertEqual(metrics.payment_collection_rate, 0)

    def test_is_repeatable(self):
        first = build_dashboard_metrics(self.snapshot, 2024, TODAY)
        second = build_dashboard_metrics(self.snapshot, 2024, TODAY)

        self.assertEqual(first, second)

    def test_empty_snapshot(self):
        metrics = build_dashboard_metrics(Snapshot(), 2024, TODAY)

        self.assertEqual(metrics.collection_rate, 0)
        self.assertEqual(metrics.occupancy_rate, 0)
        self.assertEqual(metrics.payment_collection_rate, 100)
        self.assertEqual(metrics.alerts, [])


if __name__ == '__main__':
    unittest.main()
