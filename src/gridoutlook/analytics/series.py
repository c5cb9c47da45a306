"""Analytics: series assembly helpers shared by the analyzers."""
from __future__ import annotations

from datetime import date
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from gridoutlook.data.schemas import MonthlyKpiPoint

T = TypeVar("T")


def sort_by_date(rows: Iterable[T]) -> List[T]:
    """Stable ascending sort on the ``date`` attribute."""
    return sorted(rows, key=lambda r: r.date)


def group_daily(rows: Iterable[T], key: Callable[[T], Hashable]) -> Dict[Hashable, List[T]]:
    """
    Group daily rows per entity, one row per date, ascending by date.

    Groups keep the order in which entities first appear. When an entity has
    several rows for the same date the last one wins (a later confirmed batch
    supersedes an earlier one).
    """
    per_entity: Dict[Hashable, Dict[date, T]] = {}
    for row in rows:
        per_entity.setdefault(key(row), {})[row.date] = row
    return {k: [days[d] for d in sorted(days)] for k, days in per_entity.items()}


def kpi_table(points: Iterable[MonthlyKpiPoint]) -> Dict[date, Dict[str, float]]:
    """Month -> {kpi name -> value}, months ascending, later duplicates win."""
    table: Dict[date, Dict[str, float]] = {}
    for point in sorted(points, key=lambda p: p.month):
        table.setdefault(point.month, {})[point.kpi_name] = point.value
    return table


def kpi_series(table: Dict[date, Dict[str, float]], kpi_name: str) -> List[Tuple[int, date, float]]:
    """
    (month index, month, value) for one KPI, skipping months where it is absent.

    The index is the month's position in the full table, so a KPI with a gap
    keeps its place on the shared monthly axis.
    """
    series = []
    for index, month in enumerate(table):
        value = table[month].get(kpi_name)
        if value is not None:
            series.append((index, month, value))
    return series


def latest_present(values: Sequence[Optional[float]]) -> Optional[float]:
    for value in reversed(values):
        if value is not None:
            return value
    return None


def within_window(rows: Iterable[T], start: date, end: date) -> List[T]:
    """Rows dated in ``[start, end]``."""
    return [r for r in rows if start <= r.date <= end]
