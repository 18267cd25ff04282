"""High level API for the nutrition tracker."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from .auth import IdentityProvider, Session, require_session
from .config import Settings
from .errors import NotFoundError, ValidationError
from .models import MACROS, SERVING_UNITS, DailySummary, FoodEntry, FoodItem, calculate_calories
from .storage import FoodEntryRepository, FoodItemRepository, UserRepository, new_document_id
from .summary import (
    DAYS_PER_WEEK,
    WeeklyOverview,
    compute_daily_summary,
    compute_weekly_summaries,
    weekly_overview,
)

logger = logging.getLogger(__name__)

EDITABLE_ITEM_FIELDS = ("name", "protein", "carbs", "fat", "calories", "serving_size", "serving_unit")


def parse_number(label: str, value: object) -> float:
    """Convert form input to a finite float or raise a validation error."""

    if value is None or isinstance(value, bool):
        raise ValidationError(f"Please enter a valid {label} value")
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Please enter a valid {label} value") from e
    if not math.isfinite(number):
        raise ValidationError(f"Please enter a valid {label} value")
    return number


def _non_negative(label: str, value: object) -> float:
    number = parse_number(label, value)
    if number < 0:
        raise ValidationError(f"{label.capitalize()} cannot be negative, got {number:g}")
    return number


def _positive(label: str, value: object) -> float:
    number = parse_number(label, value)
    if number <= 0:
        raise ValidationError(f"{label.capitalize()} must be greater than zero, got {number:g}")
    return number


def _clean_name(value: object) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError("Food name cannot be empty")
    return name


def _clean_unit(value: object) -> str:
    unit = str(value or "").strip()
    if unit not in SERVING_UNITS:
        raise ValidationError(
            f"Unknown serving unit '{unit}', expected one of: {', '.join(SERVING_UNITS)}"
        )
    return unit


def _normalise_timestamp(when: date | datetime | None) -> datetime:
    now = datetime.now().replace(microsecond=0)
    if when is None:
        return now
    if isinstance(when, datetime):
        if when.tzinfo is not None:
            return when.astimezone().replace(tzinfo=None)
        return when
    return datetime.combine(when, now.time())


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


@dataclass
class NutritionTracker:
    """Validates input and coordinates the food item and entry stores."""

    items: FoodItemRepository = field(default_factory=FoodItemRepository)
    entries: FoodEntryRepository = field(default_factory=FoodEntryRepository)

    # --- Food items ------------------------------------------------------
    def create_food_item(
        self,
        session: Session,
        name: str,
        protein: object,
        carbs: object,
        fat: object,
        serving_size: object,
        serving_unit: str = "g",
        calories: object = None,
    ) -> FoodItem:
        """Create a food item; calories default to the 4/4/9 estimate."""

        session = require_session(session)
        clean_name = _clean_name(name)
        protein_g = _non_negative("protein", protein)
        carbs_g = _non_negative("carbs", carbs)
        fat_g = _non_negative("fat", fat)
        if calories is None or (isinstance(calories, str) and not calories.strip()):
            calories_kcal = round(calculate_calories(protein_g, carbs_g, fat_g), 1)
        else:
            calories_kcal = _non_negative("calories", calories)
        size = _positive("serving size", serving_size)
        unit = _clean_unit(serving_unit)

        item = FoodItem(
            id=new_document_id(),
            name=clean_name,
            protein=protein_g,
            carbs=carbs_g,
            fat=fat_g,
            calories=calories_kcal,
            serving_size=size,
            serving_unit=unit,
            created_by=session.user_id,
        )
        self.items.add(item)
        logger.info(f"Created food item {item.id} ({item.name}) for user {session.user_id}")
        return item

    def list_food_items(self, session: Session) -> List[FoodItem]:
        session = require_session(session)
        return self.items.list_for_user(session.user_id)

    def get_food_item(self, session: Session, item_id: str) -> FoodItem:
        session = require_session(session)
        item = self.items.get(item_id)
        if item is None or item.created_by != session.user_id:
            raise NotFoundError("Food item not found")
        return item

    def update_food_item(self, session: Session, item_id: str, **fields: object) -> FoodItem:
        """Apply a partial update; only the supplied fields are validated.

        Editing a macro without supplying calories re-derives them with 4/4/9.
        """

        require_session(session)
        unknown = sorted(set(fields) - set(EDITABLE_ITEM_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown food item fields: {', '.join(unknown)}")

        changes: Dict[str, object] = {}
        for key, value in fields.items():
            if key == "name":
                changes[key] = _clean_name(value)
            elif key == "serving_unit":
                changes[key] = _clean_unit(value)
            elif key == "serving_size":
                changes[key] = _positive("serving size", value)
            else:
                changes[key] = _non_negative(key, value)

        item = self.get_food_item(session, item_id)
        if not changes:
            return item
        if "calories" not in changes and any(macro in changes for macro in MACROS):
            merged = {macro: changes.get(macro, getattr(item, macro)) for macro in MACROS}
            changes["calories"] = round(
                calculate_calories(merged["protein"], merged["carbs"], merged["fat"]), 1
            )
        return self.items.update(item_id, changes)

    def delete_food_item(self, session: Session, item_id: str) -> None:
        """Delete a food item. Entries created from it are left as they are."""

        self.get_food_item(session, item_id)
        self.items.delete(item_id)
        logger.info(f"Deleted food item {item_id}")

    # --- Food entries ----------------------------------------------------
    def create_food_entry(
        self,
        session: Session,
        food_item_id: str,
        servings: object = 1.0,
        when: date | datetime | None = None,
    ) -> FoodEntry:
        """Log *servings* of a food item, snapshotting its nutrition values."""

        session = require_session(session)
        servings_count = _positive("servings", servings)
        if not food_item_id:
            raise ValidationError("Please select a food item")

        item = self.get_food_item(session, food_item_id)
        entry = FoodEntry.from_food_item(
            new_document_id(),
            item,
            servings=servings_count,
            timestamp=_normalise_timestamp(when),
            user_id=session.user_id,
        )
        self.entries.add(entry)
        logger.info(f"Logged {servings_count:g} x {item.name} for user {session.user_id}")
        return entry

    def list_food_entries(self, session: Session, day: date) -> List[FoodEntry]:
        """Entries for one calendar day, newest first."""

        session = require_session(session)
        start, end = _day_bounds(day, day)
        return self.entries.list_for_user_between(session.user_id, start, end, newest_first=True)

    def list_food_entries_between(self, session: Session, start: date, end: date) -> List[FoodEntry]:
        """Entries for an inclusive range of calendar days, oldest first."""

        session = require_session(session)
        if end < start:
            raise ValidationError("End date must not be before start date")
        range_start, range_end = _day_bounds(start, end)
        return self.entries.list_for_user_between(session.user_id, range_start, range_end)

    def delete_food_entry(self, session: Session, entry_id: str) -> None:
        session = require_session(session)
        entry = self.entries.get(entry_id)
        if entry is None or entry.user_id != session.user_id:
            raise NotFoundError("Food entry not found")
        self.entries.delete(entry_id)
        logger.info(f"Deleted food entry {entry_id}")

    # --- Reporting -------------------------------------------------------
    def daily_summary(self, session: Session, day: date) -> DailySummary:
        return compute_daily_summary(day, self.list_food_entries(session, day))

    def weekly_summaries(self, session: Session, start: date, end: date) -> List[DailySummary]:
        return compute_weekly_summaries(self.list_food_entries_between(session, start, end))

    def weekly_overview(self, session: Session, start: Optional[date] = None) -> WeeklyOverview:
        """Seven days from *start*; defaults to the week ending today."""

        if start is None:
            start = date.today() - timedelta(days=DAYS_PER_WEEK - 1)
        end = start + timedelta(days=DAYS_PER_WEEK - 1)
        return weekly_overview(start, self.weekly_summaries(session, start, end))


def build_services(settings: Settings) -> tuple[NutritionTracker, IdentityProvider]:
    """Wire the tracker and identity provider to the configured data directory."""

    tracker = NutritionTracker(
        items=FoodItemRepository(storage_path=settings.food_items_path),
        entries=FoodEntryRepository(storage_path=settings.food_entries_path),
    )
    identity = IdentityProvider(
        users=UserRepository(storage_path=settings.users_path),
        session_ttl=timedelta(hours=settings.session_ttl_hours),
    )
    return tracker, identity
