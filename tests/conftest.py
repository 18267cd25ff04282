"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from nutrition_tracker.auth import IdentityProvider, Session
from nutrition_tracker.models import FoodEntry, FoodItem
from nutrition_tracker.storage import FoodEntryRepository, FoodItemRepository, UserRepository
from nutrition_tracker.tracker import NutritionTracker

# Low iteration count keeps password hashing fast in tests.
TEST_HASH_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Ensure the application uses a per-test data directory."""
    data_dir = tmp_path / "nutrition_tracker_data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("NUTRITION_TRACKER_DATA_DIR", str(data_dir))
    monkeypatch.delenv("NUTRITION_TRACKER_EMAIL", raising=False)
    monkeypatch.delenv("NUTRITION_TRACKER_PASSWORD", raising=False)
    yield data_dir


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    storage_dir = tmp_path / "store"
    storage_dir.mkdir(parents=True)
    return storage_dir


@pytest.fixture
def item_repository(storage_dir: Path) -> FoodItemRepository:
    return FoodItemRepository(storage_path=storage_dir / "food_items.json")


@pytest.fixture
def entry_repository(storage_dir: Path) -> FoodEntryRepository:
    return FoodEntryRepository(storage_path=storage_dir / "food_entries.json")


@pytest.fixture
def user_repository(storage_dir: Path) -> UserRepository:
    return UserRepository(storage_path=storage_dir / "users.json")


@pytest.fixture
def identity(user_repository: UserRepository) -> IdentityProvider:
    return IdentityProvider(users=user_repository, iterations=TEST_HASH_ITERATIONS)


@pytest.fixture
def session(identity: IdentityProvider) -> Session:
    """A logged in user."""
    return identity.register("alice@example.com", "s3cret-pass", display_name="Alice")


@pytest.fixture
def other_session(identity: IdentityProvider) -> Session:
    """A second, unrelated user."""
    return identity.register("bob@example.com", "another-pass")


@pytest.fixture
def tracker(item_repository: FoodItemRepository, entry_repository: FoodEntryRepository) -> NutritionTracker:
    return NutritionTracker(items=item_repository, entries=entry_repository)


@pytest.fixture
def sample_food_item() -> FoodItem:
    """Chicken breast, 100g serving."""
    return FoodItem(
        id="item-1",
        name="Grilled Chicken Breast",
        protein=31.0,
        carbs=0.0,
        fat=3.6,
        calories=165.0,
        serving_size=100.0,
        serving_unit="g",
        created_by="user-1",
        created_at=datetime(2024, 1, 1, 9, 0, 0),
    )


def make_entry(
    entry_id: str,
    protein: float,
    carbs: float,
    fat: float,
    calories: float,
    timestamp: datetime,
    user_id: str = "user-1",
) -> FoodEntry:
    return FoodEntry(
        id=entry_id,
        food_item_id="item-" + entry_id,
        food_item_name="Food " + entry_id,
        servings=1.0,
        protein=protein,
        carbs=carbs,
        fat=fat,
        calories=calories,
        timestamp=timestamp,
        user_id=user_id,
    )


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def target_day() -> date:
    return date(2024, 1, 15)
