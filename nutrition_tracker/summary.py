"""Aggregation of food entries into daily and weekly summaries.

Everything here is pure: summaries are recomputed from entries on every read
and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from .models import (
    CARBS_KCAL_PER_GRAM,
    FAT_KCAL_PER_GRAM,
    PROTEIN_KCAL_PER_GRAM,
    DailySummary,
    FoodEntry,
)

DAYS_PER_WEEK = 7


def macro_percentage(macro_calories: float, total_calories: float) -> float:
    """Share of *total_calories* contributed by *macro_calories*, in percent."""

    if total_calories == 0:
        return 0.0
    return 100 * macro_calories / total_calories


def compute_daily_summary(day: date, entries: Iterable[FoodEntry]) -> DailySummary:
    """Sum the entries eaten on *day*.

    Entries keep the order they were given in. Totals are exact sums, any
    rounding is left to whoever displays them.
    """

    summary = DailySummary(day=day)
    for entry in entries:
        summary.total_protein += entry.protein
        summary.total_carbs += entry.carbs
        summary.total_fat += entry.fat
        summary.total_calories += entry.calories
        summary.entries.append(entry)
    return summary


def compute_weekly_summaries(entries: Iterable[FoodEntry]) -> List[DailySummary]:
    """One summary per calendar date that has at least one entry."""

    grouped: Dict[date, List[FoodEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry.day, []).append(entry)
    return [compute_daily_summary(day, day_entries) for day, day_entries in grouped.items()]


def macro_breakdown(summary: DailySummary) -> Dict[str, Dict[str, float]]:
    """Calories and calorie percentage contributed by each macro."""

    macro_calories = {
        "protein": summary.total_protein * PROTEIN_KCAL_PER_GRAM,
        "carbs": summary.total_carbs * CARBS_KCAL_PER_GRAM,
        "fat": summary.total_fat * FAT_KCAL_PER_GRAM,
    }
    return {
        macro: {
            "calories": calories,
            "percentage": macro_percentage(calories, summary.total_calories),
        }
        for macro, calories in macro_calories.items()
    }


@dataclass
class WeeklyOverview:
    """Seven consecutive days starting at *start* and their summaries."""

    start: date
    summaries: List[DailySummary] = field(default_factory=list)

    @property
    def end(self) -> date:
        return self.start + timedelta(days=DAYS_PER_WEEK - 1)

    def days(self) -> List[date]:
        return [self.start + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]

    def summary_for(self, day: date) -> Optional[DailySummary]:
        for summary in self.summaries:
            if summary.day == day:
                return summary
        return None

    def active_days(self) -> int:
        return sum(1 for summary in self.summaries if summary.entries)

    def totals(self) -> Dict[str, float]:
        return {
            "protein": sum(summary.total_protein for summary in self.summaries),
            "carbs": sum(summary.total_carbs for summary in self.summaries),
            "fat": sum(summary.total_fat for summary in self.summaries),
            "calories": sum(summary.total_calories for summary in self.summaries),
        }

    def averages(self) -> Dict[str, float]:
        # Always over the full week, days without entries count as zero.
        return {key: value / DAYS_PER_WEEK for key, value in self.totals().items()}

    def to_dict(self) -> Dict[str, object]:
        days = []
        for day in self.days():
            summary = self.summary_for(day)
            if summary is None:
                summary = DailySummary(day=day)
            payload = summary.to_dict()
            payload["has_entries"] = bool(summary.entries)
            days.append(payload)
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "days": days,
            "active_days": self.active_days(),
            "totals": self.totals(),
            "averages": self.averages(),
        }


def weekly_overview(start: date, summaries: Iterable[DailySummary]) -> WeeklyOverview:
    """Wrap the summaries that fall inside the week beginning at *start*."""

    end = start + timedelta(days=DAYS_PER_WEEK - 1)
    in_range = [summary for summary in summaries if start <= summary.day <= end]
    return WeeklyOverview(start=start, summaries=in_range)
