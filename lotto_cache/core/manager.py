"""
Cross-namespace cache coordination.

Domain data changes (a sale recorded, a ticket batch edited, a user's
permissions updated) affect cached values in more than one namespace. The
``CacheManager`` translates each change into the set of keys that can no
longer be trusted and removes them.
"""

from typing import Any, Dict, Optional, Union

from ..types.models import CacheStats, DomainEvent, LogLevel, efficiency_percent
from ..utils.cache.keys import CachePatterns, DateLike
from ..utils.logging import StructuredLogger
from .exceptions import ValidationError
from .registry import CacheRegistry


class CacheManager:
    """
    Invalidation, statistics and lifecycle fan-out over a ``CacheRegistry``.

    Every invalidation method returns the number of entries it removed.
    Fan-out touches the namespaces one after another and is not atomic:
    a concurrent reader may briefly see one namespace invalidated and
    another not yet.
    """

    def __init__(self, registry: CacheRegistry, logger: Optional[StructuredLogger] = None):
        self.registry = registry
        self.logger = logger or StructuredLogger(
            "cache_manager",
            level=registry.settings.log_level,
            log_dir=registry.settings.log_dir
        )

    def _log_invalidation(self, event: DomainEvent, removed: int, **scope: Any) -> None:
        scope = {k: v for k, v in scope.items() if v is not None}
        self.logger.info(f"Invalidated {event.value} caches", removed=removed, **scope)

    # Domain events

    def invalidate_sales(self, date: Optional[DateLike] = None) -> int:
        """
        A sale was created, edited or deleted.

        With a date, drops that day's sales keys plus the weekly and monthly
        totals containing it; without one, drops every sales key. Comparisons
        span arbitrary ranges so they are always dropped, and so are the
        dashboard summaries.
        """
        sales = self.registry.sales
        dashboard = self.registry.dashboard

        if date is not None:
            removed = sales.invalidate_pattern(CachePatterns.sales_for_date(date))
            removed += sales.invalidate_pattern(CachePatterns.ALL_COMPARISONS)
            removed += dashboard.invalidate_pattern(CachePatterns.ALL_DASHBOARD)
        else:
            removed = sales.invalidate_pattern(CachePatterns.ALL_SALES)
            removed += sales.invalidate_pattern(CachePatterns.ALL_COMPARISONS)
            removed += len(dashboard)
            dashboard.clear()

        self._log_invalidation(DomainEvent.SALES, removed, date=date)
        return removed

    def invalidate_commissions(self, year: Optional[int] = None, month: Optional[int] = None) -> int:
        finances = self.registry.finances
        if year is not None and month is not None:
            removed = finances.invalidate_pattern(CachePatterns.commissions_for_month(year, month))
        else:
            removed = finances.invalidate_pattern(CachePatterns.ALL_COMMISSIONS)

        self._log_invalidation(DomainEvent.COMMISSIONS, removed, year=year, month=month)
        return removed

    def invalidate_paid_prizes(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        week: Optional[str] = None
    ) -> int:
        """Paid prizes changed for a month, optionally also naming the ISO week."""
        finances = self.registry.finances
        if year is not None and month is not None:
            removed = finances.invalidate_pattern(CachePatterns.paid_prizes_for_month(year, month))
            if week is not None:
                removed += finances.invalidate_pattern(CachePatterns.paid_prizes_for_week(week))
        else:
            removed = finances.invalidate_pattern(CachePatterns.ALL_PAID_PRIZES)

        self._log_invalidation(DomainEvent.PAID_PRIZES, removed, year=year, month=month, week=week)
        return removed

    def invalidate_tickets(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        week: Optional[str] = None
    ) -> int:
        """Ticket counts changed for a month, optionally also naming the ISO week."""
        finances = self.registry.finances
        if year is not None and month is not None:
            removed = finances.invalidate_pattern(CachePatterns.tickets_for_month(year, month))
            if week is not None:
                removed += finances.invalidate_pattern(CachePatterns.tickets_for_week(week))
        else:
            removed = finances.invalidate_pattern(CachePatterns.ALL_TICKETS)

        self._log_invalidation(DomainEvent.TICKETS, removed, year=year, month=month, week=week)
        return removed

    def invalidate_ticket_averages(self, year: Optional[int] = None, month: Optional[int] = None) -> int:
        finances = self.registry.finances
        if year is not None and month is not None:
            removed = finances.invalidate_pattern(CachePatterns.ticket_averages_for_month(year, month))
        else:
            removed = finances.invalidate_pattern(CachePatterns.ALL_TICKET_AVERAGES)

        self._log_invalidation(DomainEvent.TICKET_AVERAGES, removed, year=year, month=month)
        return removed

    def invalidate_roll_changes(self, year: Optional[int] = None, month: Optional[int] = None) -> int:
        """
        A roll change was recorded or edited.

        Range reports may cover the month without naming it, so every range
        key goes as well.
        """
        finances = self.registry.finances
        if year is not None and month is not None:
            removed = finances.invalidate_pattern(CachePatterns.roll_changes_for_month(year, month))
            removed += finances.invalidate_pattern(CachePatterns.ROLL_CHANGE_RANGES)
        else:
            removed = finances.invalidate_pattern(CachePatterns.ALL_ROLL_CHANGES)

        self._log_invalidation(DomainEvent.ROLL_CHANGES, removed, year=year, month=month)
        return removed

    def invalidate_user(self, user_id: Optional[str] = None) -> int:
        user = self.registry.user
        if user_id is not None:
            removed = user.invalidate_pattern(CachePatterns.user(user_id))
        else:
            removed = len(user)
            user.clear()

        self._log_invalidation(DomainEvent.USER, removed, user_id=user_id)
        return removed

    def invalidate_dashboard(self) -> int:
        dashboard = self.registry.dashboard
        removed = len(dashboard)
        dashboard.clear()

        self._log_invalidation(DomainEvent.DASHBOARD, removed)
        return removed

    def invalidate_namespace(self, event: Union[DomainEvent, str], **scope: Any) -> int:
        """
        Dispatch a domain event by name.

        Args:
            event: ``DomainEvent`` or its string value, e.g. ``"tickets"``
            **scope: Keyword arguments of the matching ``invalidate_*`` method

        Raises:
            ValidationError: If the event is unknown
        """
        try:
            event = DomainEvent(event)
        except ValueError:
            valid = ", ".join(e.value for e in DomainEvent)
            raise ValidationError(
                f"Unknown domain event: {event!r}. Valid events are: {valid}",
                field_name="event",
                actual_value=event
            ) from None

        handler = getattr(self, f"invalidate_{event.value}")
        return handler(**scope)

    # Maintenance

    def get_global_stats(self) -> Dict[str, Dict[str, int]]:
        """
        Statistics for every namespace plus a ``total`` entry.

        The total's efficiency is computed from the summed hits and
        requests, not averaged across namespaces.
        """
        result: Dict[str, Dict[str, int]] = {}
        total = CacheStats()
        for name, store in self.registry:
            stats = store.get_stats()
            result[name] = stats.to_dict()
            total.hits += stats.hits
            total.misses += stats.misses
            total.total_requests += stats.total_requests
            total.saved_requests += stats.saved_requests
            total.size += stats.size

        total.efficiency = efficiency_percent(total.hits, total.total_requests)
        result['total'] = total.to_dict()
        return result

    def cleanup(self) -> Dict[str, int]:
        """Sweep expired entries in every namespace."""
        removed = {name: store.cleanup() for name, store in self.registry}
        if any(removed.values()):
            self.logger.info("Swept expired cache entries", **removed)
        return removed

    def clear_all(self) -> None:
        """Empty every namespace, including persisted mirrors."""
        for _, store in self.registry:
            store.clear()
        self.logger.info("Cleared all cache namespaces")

    def set_log_level(self, level: Union[LogLevel, str]) -> None:
        """Change the log level of the manager, the registry and every store."""
        self.logger.set_level(level)
        self.registry.set_log_level(level)

    def destroy_all(self) -> None:
        self.registry.destroy()
