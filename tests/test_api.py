"""Tests for the API module."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from nutrition_tracker.api import app
from nutrition_tracker.auth import IdentityProvider
from nutrition_tracker.errors import BackendUnavailable
from nutrition_tracker.storage import FoodEntryRepository, FoodItemRepository, UserRepository
from nutrition_tracker.tracker import NutritionTracker


@pytest.fixture
def client(temp_data_dir) -> TestClient:
    """Create a test client for the FastAPI app with isolated storage."""
    app.state.tracker = NutritionTracker(
        items=FoodItemRepository(storage_path=temp_data_dir / "food_items.json"),
        entries=FoodEntryRepository(storage_path=temp_data_dir / "food_entries.json"),
    )
    app.state.identity = IdentityProvider(
        users=UserRepository(storage_path=temp_data_dir / "users.json"), iterations=1_000
    )
    with TestClient(app) as client:
        yield client
    app.state.tracker = None
    app.state.identity = None


def _register(client: TestClient, email: str = "alice@example.com") -> dict:
    response = client.post("/api/auth/register", json={"email": email, "password": "s3cret-pass"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def headers(client) -> dict:
    return _register(client)


@pytest.fixture
def food_payload() -> dict:
    return {
        "name": "Test Food",
        "protein": 10.0,
        "carbs": 20.0,
        "fat": 5.0,
        "calories": 170.0,
        "serving_size": 100.0,
        "serving_unit": "g",
    }


@pytest.fixture
def food(client, headers, food_payload) -> dict:
    response = client.post("/api/foods", json=food_payload, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestAuth:
    """Tests for /api/auth endpoints."""

    def test_register_returns_token_and_user(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "New@Example.com", "password": "password1", "display_name": "New"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["display_name"] == "New"

    def test_register_duplicate(self, client, headers):
        response = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "password1"})
        assert response.status_code == 409

    def test_register_short_password(self, client):
        response = client.post("/api/auth/register", json={"email": "a@example.com", "password": "abc"})
        assert response.status_code == 422

    def test_login_and_me(self, client, headers):
        response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
        assert response.status_code == 200
        token = response.json()["token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "alice@example.com"

    def test_login_bad_password(self, client, headers):
        response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
        assert response.status_code == 401

    def test_logout_invalidates_token(self, client, headers):
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    @pytest.mark.parametrize("value", [None, "Bearer ", "Basic abc", "Bearer unknown"])
    def test_requires_valid_bearer_token(self, client, value):
        request_headers = {"Authorization": value} if value is not None else {}
        response = client.get("/api/foods", headers=request_headers)
        assert response.status_code == 401


class TestFoods:
    """Tests for /api/foods endpoints."""

    def test_create_food(self, food, food_payload):
        assert food["name"] == food_payload["name"]
        assert food["calories"] == 170.0
        assert "id" in food
        assert "created_by" not in food

    def test_create_food_derives_calories(self, client, headers, food_payload):
        food_payload.pop("calories")
        response = client.post("/api/foods", json=food_payload, headers=headers)
        assert response.status_code == 201
        assert response.json()["calories"] == 165.0

    @pytest.mark.parametrize(
        "field,value",
        [("protein", -1), ("serving_size", 0), ("carbs", "abc"), ("calories", -10), ("name", "")],
    )
    def test_create_food_validation(self, client, headers, food_payload, field, value):
        food_payload[field] = value
        response = client.post("/api/foods", json=food_payload, headers=headers)
        assert response.status_code == 422
        assert client.get("/api/foods", headers=headers).json()["items"] == []

    def test_create_food_unknown_unit(self, client, headers, food_payload):
        food_payload["serving_unit"] = "bucket"
        response = client.post("/api/foods", json=food_payload, headers=headers)
        assert response.status_code == 422
        assert "serving unit" in response.json()["detail"]

    def test_list_foods_alphabetical(self, client, headers, food_payload):
        for name in ["Zucchini", "apple", "Milk"]:
            client.post("/api/foods", json={**food_payload, "name": name}, headers=headers)
        names = [item["name"] for item in client.get("/api/foods", headers=headers).json()["items"]]
        assert names == ["apple", "Milk", "Zucchini"]

    def test_foods_are_per_user(self, client, food):
        other = _register(client, "bob@example.com")
        assert client.get("/api/foods", headers=other).json()["items"] == []
        assert client.get(f"/api/foods/{food['id']}", headers=other).status_code == 404

    def test_get_food(self, client, headers, food):
        response = client.get(f"/api/foods/{food['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json() == food

    def test_update_food(self, client, headers, food):
        response = client.patch(f"/api/foods/{food['id']}", json={"protein": 12.5}, headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["protein"] == 12.5
        assert data["carbs"] == food["carbs"]

    def test_update_macro_recomputes_calories(self, client, headers, food):
        response = client.patch(f"/api/foods/{food['id']}", json={"fat": 10.0}, headers=headers)
        assert response.status_code == 200
        assert response.json()["calories"] == 210.0

    def test_update_food_validation(self, client, headers, food):
        response = client.patch(f"/api/foods/{food['id']}", json={"serving_size": 0}, headers=headers)
        assert response.status_code == 422

    def test_update_missing_food(self, client, headers):
        response = client.patch("/api/foods/missing", json={"name": "x"}, headers=headers)
        assert response.status_code == 404

    def test_delete_food(self, client, headers, food):
        assert client.delete(f"/api/foods/{food['id']}", headers=headers).status_code == 204
        assert client.get(f"/api/foods/{food['id']}", headers=headers).status_code == 404


class TestEntries:
    """Tests for /api/entries endpoints."""

    def test_create_entry(self, client, headers, food):
        response = client.post(
            "/api/entries",
            json={"food_item_id": food["id"], "servings": 2, "date": "2024-01-15T12:00:00"},
            headers=headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["food_item_name"] == "Test Food"
        assert data["servings"] == 2
        assert data["protein"] == 20.0
        assert data["calories"] == 340.0
        assert data["timestamp"] == "2024-01-15T12:00:00"

    @pytest.mark.parametrize("servings", [0, -1])
    def test_create_entry_rejects_servings(self, client, headers, food, servings):
        response = client.post("/api/entries", json={"food_item_id": food["id"], "servings": servings}, headers=headers)
        assert response.status_code == 422

    def test_create_entry_missing_food(self, client, headers):
        response = client.post("/api/entries", json={"food_item_id": "missing", "servings": 1}, headers=headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Food item not found"

    def test_list_entries_for_date(self, client, headers, food):
        for stamp in ["2024-01-15T08:00:00", "2024-01-15T20:00:00", "2024-01-16T08:00:00"]:
            client.post("/api/entries", json={"food_item_id": food["id"], "date": stamp}, headers=headers)
        response = client.get("/api/entries?date=2024-01-15", headers=headers)
        assert response.status_code == 200
        stamps = [entry["timestamp"] for entry in response.json()["items"]]
        assert stamps == ["2024-01-15T20:00:00", "2024-01-15T08:00:00"]

    def test_list_entries_defaults_to_today(self, client, headers, food):
        client.post("/api/entries", json={"food_item_id": food["id"]}, headers=headers)
        assert len(client.get("/api/entries", headers=headers).json()["items"]) == 1

    def test_delete_entry(self, client, headers, food):
        entry = client.post(
            "/api/entries", json={"food_item_id": food["id"], "date": "2024-01-15T08:00:00"}, headers=headers
        ).json()
        assert client.delete(f"/api/entries/{entry['id']}", headers=headers).status_code == 204
        assert client.get("/api/entries?date=2024-01-15", headers=headers).json()["items"] == []
        assert client.delete(f"/api/entries/{entry['id']}", headers=headers).status_code == 404

    def test_deleting_food_keeps_entries(self, client, headers, food):
        client.post("/api/entries", json={"food_item_id": food["id"], "date": "2024-01-15T08:00:00"}, headers=headers)
        client.delete(f"/api/foods/{food['id']}", headers=headers)
        [entry] = client.get("/api/entries?date=2024-01-15", headers=headers).json()["items"]
        assert entry["calories"] == 170.0


class TestDashboardAndHistory:
    """Tests for the summary views."""

    def test_dashboard(self, client, headers, food):
        client.post("/api/entries", json={"food_item_id": food["id"], "date": "2024-01-15T08:00:00"}, headers=headers)
        response = client.get("/api/dashboard?date=2024-01-15", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["date"] == "2024-01-15"
        assert data["total_calories"] == 170.0
        assert len(data["entries"]) == 1
        assert "user_id" not in data["entries"][0]
        assert data["macros"]["protein"]["calories"] == 40.0
        assert data["macros"]["fat"]["calories"] == 45.0

    def test_dashboard_empty_day(self, client, headers):
        data = client.get("/api/dashboard?date=2024-01-15", headers=headers).json()
        assert data["total_calories"] == 0
        assert all(values["percentage"] == 0 for values in data["macros"].values())

    def test_history_averages_over_seven_days(self, client, headers, food_payload):
        big = client.post("/api/foods", json={**food_payload, "name": "Big", "calories": 500}, headers=headers).json()
        small = client.post("/api/foods", json={**food_payload, "name": "Small", "calories": 300}, headers=headers).json()
        client.post("/api/entries", json={"food_item_id": big["id"], "date": "2024-01-15T12:00:00"}, headers=headers)
        client.post("/api/entries", json={"food_item_id": small["id"], "date": "2024-01-18T12:00:00"}, headers=headers)

        response = client.get("/api/history?start=2024-01-15", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["end"] == "2024-01-21"
        assert len(data["days"]) == 7
        assert data["active_days"] == 2
        assert data["totals"]["calories"] == 800
        assert data["averages"]["calories"] == pytest.approx(800 / 7)
        assert [day["has_entries"] for day in data["days"]] == [True, False, False, True, False, False, False]

    def test_history_default_start(self, client, headers):
        data = client.get("/api/history", headers=headers).json()
        assert data["start"] == (date.today() - timedelta(days=6)).isoformat()
        assert data["end"] == date.today().isoformat()

    def test_storage_failure_reports_retry(self, client, headers, monkeypatch):
        def broken(*args, **kwargs):
            raise BackendUnavailable("disk on fire")

        monkeypatch.setattr(app.state.tracker.entries, "list_for_user_between", broken)
        response = client.get("/api/dashboard?date=2024-01-15", headers=headers)
        assert response.status_code == 503
        assert response.json()["retry"] is True
