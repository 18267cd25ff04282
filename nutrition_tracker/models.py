"""Domain models for the nutrition tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

PROTEIN_KCAL_PER_GRAM = 4.0
CARBS_KCAL_PER_GRAM = 4.0
FAT_KCAL_PER_GRAM = 9.0

SERVING_UNITS = ("g", "ml", "oz", "cup", "tbsp", "tsp", "piece", "slice", "serving")

MACROS = ("protein", "carbs", "fat")


def calculate_calories(protein: float, carbs: float, fat: float) -> float:
    """Energy of a macro profile using the 4/4/9 kcal per gram convention."""

    return protein * PROTEIN_KCAL_PER_GRAM + carbs * CARBS_KCAL_PER_GRAM + fat * FAT_KCAL_PER_GRAM


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


@dataclass
class FoodItem:
    """A reusable food definition with its nutrition per serving."""

    id: str
    name: str
    protein: float
    carbs: float
    fat: float
    calories: float
    serving_size: float
    serving_unit: str
    created_by: str
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
            "calories": self.calories,
            "serving_size": self.serving_size,
            "serving_unit": self.serving_unit,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "FoodItem":
        created_at = data.get("created_at")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            protein=float(data.get("protein", 0.0)),
            carbs=float(data.get("carbs", 0.0)),
            fat=float(data.get("fat", 0.0)),
            calories=float(data.get("calories", 0.0)),
            serving_size=float(data.get("serving_size", 1.0)),
            serving_unit=str(data.get("serving_unit", "serving")),
            created_by=str(data["created_by"]),
            created_at=datetime.fromisoformat(created_at) if created_at else _now(),
        )


@dataclass
class FoodEntry:
    """A record of eating some servings of a food item.

    The nutrition values are copied from the food item when the entry is
    created, so later edits to the item never change an existing entry.
    """

    id: str
    food_item_id: str
    food_item_name: str
    servings: float
    protein: float
    carbs: float
    fat: float
    calories: float
    timestamp: datetime
    user_id: str
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def from_food_item(
        cls,
        entry_id: str,
        item: FoodItem,
        servings: float,
        timestamp: datetime,
        user_id: str,
    ) -> "FoodEntry":
        return cls(
            id=entry_id,
            food_item_id=item.id,
            food_item_name=item.name,
            servings=servings,
            protein=item.protein * servings,
            carbs=item.carbs * servings,
            fat=item.fat * servings,
            calories=item.calories * servings,
            timestamp=timestamp,
            user_id=user_id,
        )

    @property
    def day(self) -> date:
        return self.timestamp.date()

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "food_item_id": self.food_item_id,
            "food_item_name": self.food_item_name,
            "servings": self.servings,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
            "calories": self.calories,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "FoodEntry":
        created_at = data.get("created_at")
        return cls(
            id=str(data["id"]),
            food_item_id=str(data["food_item_id"]),
            food_item_name=str(data.get("food_item_name", "")),
            servings=float(data.get("servings", 1.0)),
            protein=float(data.get("protein", 0.0)),
            carbs=float(data.get("carbs", 0.0)),
            fat=float(data.get("fat", 0.0)),
            calories=float(data.get("calories", 0.0)),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
            user_id=str(data["user_id"]),
            created_at=datetime.fromisoformat(created_at) if created_at else _now(),
        )


@dataclass
class DailySummary:
    """Totals for one calendar day and the entries they were summed from."""

    day: date
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fat: float = 0.0
    total_calories: float = 0.0
    entries: List[FoodEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.day.isoformat(),
            "total_protein": self.total_protein,
            "total_carbs": self.total_carbs,
            "total_fat": self.total_fat,
            "total_calories": self.total_calories,
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass
class User:
    """An account known to the identity provider."""

    id: str
    email: str
    password_hash: str
    display_name: Optional[str] = None
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "email": self.email,
            "password_hash": self.password_hash,
            "display_name": self.display_name,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "User":
        created_at = data.get("created_at")
        display_name = data.get("display_name")
        return cls(
            id=str(data["id"]),
            email=str(data["email"]),
            password_hash=str(data["password_hash"]),
            display_name=str(display_name) if display_name else None,
            created_at=datetime.fromisoformat(created_at) if created_at else _now(),
        )
