"""
Tests for cross-namespace invalidation, global statistics and lifecycle
fan-out in ``CacheManager``.
"""

from datetime import date

import pytest

from lotto_cache.core.exceptions import ValidationError
from lotto_cache.types.models import DomainEvent, LogLevel
from lotto_cache.utils.cache.keys import CacheKeys

DAY = date(2025, 8, 14)  # Thursday, week starting 2025-08-11


def fill(store, *keys):
    for key in keys:
        store.set(key, key)


class TestSalesInvalidation:

    @pytest.fixture(autouse=True)
    def populate(self, registry):
        fill(
            registry.sales,
            CacheKeys.daily_total(DAY),
            CacheKeys.sales_for_date(DAY),
            CacheKeys.hourly_sales(DAY),
            CacheKeys.weekly_total(DAY),
            CacheKeys.monthly_total(2025, 8),
            CacheKeys.daily_total(date(2025, 8, 13)),
            CacheKeys.weekly_total(date(2025, 8, 6)),
            CacheKeys.monthly_total(2025, 7),
            CacheKeys.comparison(date(2025, 8, 1), DAY, "daily"),
        )
        fill(
            registry.dashboard,
            CacheKeys.todays_sales(DAY),
            CacheKeys.this_month_sales(DAY),
        )
        fill(registry.user, CacheKeys.user_profile("u1"))

    def test_dated_invalidation(self, manager, registry):
        removed = manager.invalidate_sales(DAY)

        assert removed == 8
        assert sorted(registry.sales.keys()) == [
            "sales:daily:total:2025-08-13",
            "sales:monthly:total:2025-07",
            "sales:weekly:total:2025-08-04",
        ]
        assert len(registry.dashboard) == 0
        assert len(registry.user) == 1

    def test_dated_invalidation_accepts_strings(self, manager, registry):
        assert manager.invalidate_sales("2025-08-14") == 8

    def test_full_invalidation(self, manager, registry):
        removed = manager.invalidate_sales()

        assert removed == 11
        assert len(registry.sales) == 0
        assert len(registry.dashboard) == 0
        assert registry.user.has(CacheKeys.user_profile("u1"))

    def test_dashboard_clear_resets_its_stats(self, manager, registry):
        registry.dashboard.get(CacheKeys.todays_sales(DAY))
        manager.invalidate_sales()
        assert registry.dashboard.get_stats().total_requests == 0

    def test_invalid_date(self, manager):
        with pytest.raises(ValidationError):
            manager.invalidate_sales("14/08/2025")


class TestFinanceInvalidation:

    def test_commissions_for_month(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.commissions_monthly_list(2025, 1),
            CacheKeys.commissions_monthly_list(2025, 10),
            CacheKeys.commissions_monthly_list(2025, 11),
        )

        assert manager.invalidate_commissions(2025, 1) == 1
        assert sorted(registry.finances.keys()) == [
            "commissions:monthly:list:2025-10",
            "commissions:monthly:list:2025-11",
        ]

    def test_all_commissions(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.commissions_monthly_list(2025, 1),
            CacheKeys.tickets_monthly_list(2025, 1),
        )

        assert manager.invalidate_commissions() == 1
        assert registry.finances.keys() == ["tickets:monthly:list:2025-01"]

    def test_paid_prizes_for_month_and_week(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.paid_prizes_monthly_list(2025, 8),
            CacheKeys.paid_prizes_monthly_totals(2025, 8),
            CacheKeys.paid_prizes_weekly_list("2025-W33"),
            CacheKeys.paid_prizes_weekly_totals("2025-W33"),
            CacheKeys.paid_prizes_weekly_list("2025-W32"),
            CacheKeys.paid_prizes_monthly_list(2025, 7),
        )

        assert manager.invalidate_paid_prizes(2025, 8, week="2025-W33") == 4
        assert sorted(registry.finances.keys()) == [
            "paidPrizes:monthly:list:2025-07",
            "paidPrizes:weekly:list:2025-W32",
        ]

    def test_paid_prizes_without_week(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.paid_prizes_monthly_list(2025, 8),
            CacheKeys.paid_prizes_weekly_list("2025-W33"),
        )

        assert manager.invalidate_paid_prizes(2025, 8) == 1
        assert manager.invalidate_paid_prizes() == 1
        assert len(registry.finances) == 0

    def test_tickets_for_month_and_week(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.tickets_monthly_list(2025, 8),
            CacheKeys.tickets_monthly_stats(2025, 8),
            CacheKeys.tickets_weekly_list("2025-W33"),
            CacheKeys.tickets_weekly_totals("2025-W33"),
            CacheKeys.tickets_weekly_totals("2025-W33", machine_id="M1"),
            CacheKeys.tickets_weekly_totals("2025-W34", machine_id="M1"),
            CacheKeys.ticket_averages_monthly_list(2025, 8),
        )

        assert manager.invalidate_tickets(2025, 8, week="2025-W33") == 5
        assert sorted(registry.finances.keys()) == [
            "ticketAverages:monthly:list:2025-08",
            "tickets:weekly:totals:2025-W34:M1",
        ]

    def test_ticket_averages(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.ticket_averages_monthly_list(2025, 8),
            CacheKeys.ticket_averages_daily_stats(2025, 8),
            CacheKeys.ticket_averages_monthly_stats(2025, 8),
            CacheKeys.ticket_averages_monthly_list(2025, 9),
        )

        assert manager.invalidate_ticket_averages(2025, 8) == 3
        assert manager.invalidate_ticket_averages() == 1

    def test_roll_changes_for_month(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.roll_changes_monthly_list(2025, 8),
            CacheKeys.roll_change_entry("rc-1", 2025, 8),
            CacheKeys.roll_changes_monthly_stats(2025, 8),
            CacheKeys.roll_changes_intervals("M1", 2025, 8),
            CacheKeys.roll_changes_range(2025, 1, 2025, 3),
            CacheKeys.roll_changes_monthly_list(2025, 7),
        )

        # Every range key goes, even ones that do not end in the month
        assert manager.invalidate_roll_changes(2025, 8) == 5
        assert registry.finances.keys() == ["rollChanges:monthly:list:2025-07"]

    def test_all_roll_changes(self, manager, registry):
        fill(
            registry.finances,
            CacheKeys.roll_changes_monthly_list(2025, 8),
            CacheKeys.roll_changes_range(2025, 1, 2025, 3),
            CacheKeys.commissions_monthly_list(2025, 8),
        )

        assert manager.invalidate_roll_changes() == 2
        assert registry.finances.keys() == ["commissions:monthly:list:2025-08"]


class TestUserAndDashboardInvalidation:

    def test_single_user(self, manager, registry):
        fill(
            registry.user,
            CacheKeys.user_profile("u1"),
            CacheKeys.user_permissions("u1"),
            CacheKeys.user_profile("u10"),
        )

        assert manager.invalidate_user("u1") == 2
        assert registry.user.keys() == ["user:profile:u10"]

    def test_all_users(self, manager, registry):
        fill(registry.user, CacheKeys.user_profile("u1"), CacheKeys.user_profile("u2"))

        assert manager.invalidate_user() == 2
        assert len(registry.user) == 0

    def test_dashboard(self, manager, registry):
        fill(registry.dashboard, CacheKeys.todays_sales(DAY), CacheKeys.this_week_sales(DAY))

        assert manager.invalidate_dashboard() == 2
        assert len(registry.dashboard) == 0


class TestEventDispatch:

    def test_dispatch_by_string(self, manager, registry):
        fill(registry.finances, CacheKeys.tickets_monthly_list(2025, 8))
        assert manager.invalidate_namespace("tickets", year=2025, month=8) == 1

    def test_dispatch_by_enum(self, manager, registry):
        fill(registry.user, CacheKeys.user_profile("u1"))
        assert manager.invalidate_namespace(DomainEvent.USER, user_id="u1") == 1

    def test_every_event_has_a_handler(self, manager):
        for event in DomainEvent:
            assert manager.invalidate_namespace(event) == 0

    def test_unknown_event(self, manager):
        with pytest.raises(ValidationError):
            manager.invalidate_namespace("inventory")


class TestMaintenance:

    def test_global_stats(self, manager, registry):
        registry.sales.set("a", 1)
        for _ in range(3):
            registry.sales.get("a")
        registry.sales.get("missing")
        for _ in range(4):
            registry.user.get("missing")

        stats = manager.get_global_stats()

        assert set(stats) == {'sales', 'finances', 'user', 'dashboard', 'total'}
        assert stats['sales']['efficiency'] == 75
        assert stats['user']['efficiency'] == 0
        assert stats['total']['hits'] == 3
        assert stats['total']['total_requests'] == 8
        assert stats['total']['size'] == 1
        # 3 of 8 is 37.5%
        assert stats['total']['efficiency'] == 38

    def test_cleanup(self, manager, registry, clock):
        registry.sales.set("short", 1, ttl_minutes=1)
        registry.sales.set("long", 1, ttl_minutes=60)
        registry.dashboard.set("short", 1, ttl_minutes=1)
        clock.advance(minutes=5)

        assert manager.cleanup() == {'sales': 1, 'finances': 0, 'user': 0, 'dashboard': 1}
        assert registry.sales.keys() == ["long"]

    def test_clear_all(self, manager, registry, memory_medium):
        registry.sales.set("a", 1)
        registry.user.set("b", 2)

        manager.clear_all()

        assert all(len(store) == 0 for _, store in registry)
        assert memory_medium.keys() == []

    def test_destroy_all(self, manager, registry):
        registry.sales.set("a", 1)
        manager.destroy_all()
        assert len(registry.sales) == 0

    def test_set_log_level(self, manager, registry):
        manager.set_log_level("warning")

        assert manager.logger.level == LogLevel.WARNING
        assert registry.logger.level == LogLevel.WARNING
        assert all(store.logger.level == LogLevel.WARNING for _, store in registry)

        with pytest.raises(ValueError):
            manager.set_log_level("LOUD")
