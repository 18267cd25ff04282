"""FastAPI application exposing the nutrition tracker over HTTP."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .auth import IdentityProvider, Session
from .config import load_settings
from .errors import (
    AuthenticationError,
    BackendUnavailable,
    DuplicateUserError,
    NotFoundError,
    ValidationError,
)
from .models import FoodEntry, FoodItem
from .summary import macro_breakdown
from .tracker import NutritionTracker, build_services

logger = logging.getLogger(__name__)


class CredentialsPayload(BaseModel):
    """Schema for login requests."""

    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)


class RegisterPayload(CredentialsPayload):
    """Schema for account registration."""

    display_name: Optional[str] = Field(default=None, max_length=100)


class FoodItemPayload(BaseModel):
    """Schema representing a food item sent by the add-food form."""

    name: str = Field(..., min_length=1)
    protein: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    fat: float = Field(..., ge=0)
    calories: Optional[float] = Field(default=None, ge=0)
    serving_size: float = Field(..., gt=0)
    serving_unit: str = "g"


class FoodItemUpdatePayload(BaseModel):
    """Schema for a partial food item update."""

    name: Optional[str] = Field(default=None, min_length=1)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    calories: Optional[float] = Field(default=None, ge=0)
    serving_size: Optional[float] = Field(default=None, gt=0)
    serving_unit: Optional[str] = None


class EntryPayload(BaseModel):
    """Schema describing a request to log a food entry."""

    food_item_id: str = Field(..., min_length=1)
    servings: float = Field(1.0, gt=0)
    date: datetime | None = None


settings = load_settings()

app = FastAPI(title="Nutrition Tracker", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _ensure_services() -> None:
    if getattr(app.state, "tracker", None) is None or getattr(app.state, "identity", None) is None:
        app.state.tracker, app.state.identity = build_services(load_settings())


@app.on_event("startup")
def _startup() -> None:
    logging.basicConfig(level=load_settings().log_level)
    _ensure_services()


def get_tracker() -> NutritionTracker:
    _ensure_services()
    return app.state.tracker


def get_identity() -> IdentityProvider:
    _ensure_services()
    return app.state.identity


def get_session(
    authorization: str = Header(default=""),
    identity: IdentityProvider = Depends(get_identity),
) -> Session:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Not authenticated")
    return identity.resolve(token.strip())


# --- Error handling --------------------------------------------------------
@app.exception_handler(ValidationError)
def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AuthenticationError)
def _auth_error(request: Request, exc: AuthenticationError) -> JSONResponse:
    status_code = 409 if isinstance(exc, DuplicateUserError) else 401
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(BackendUnavailable)
def _backend_unavailable(request: Request, exc: BackendUnavailable) -> JSONResponse:
    logger.error(f"Storage failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "The service is temporarily unavailable, please try again", "retry": True},
    )


# --- Serialisation ---------------------------------------------------------
def _serialise_food(item: FoodItem) -> Dict[str, object]:
    payload = item.to_dict()
    payload.pop("created_by", None)
    return payload


def _serialise_entry(entry: FoodEntry) -> Dict[str, object]:
    payload = entry.to_dict()
    payload.pop("user_id", None)
    return payload


def _serialise_session(session: Session) -> Dict[str, object]:
    return {
        "token": session.token,
        "expires_at": session.expires_at.isoformat(),
        "user": {
            "id": session.user_id,
            "email": session.email,
            "display_name": session.display_name,
        },
    }


auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])
api_router = APIRouter(prefix="/api")


@auth_router.post("/register", status_code=201)
def register(payload: RegisterPayload, identity: IdentityProvider = Depends(get_identity)) -> Dict[str, object]:
    session = identity.register(payload.email, payload.password, display_name=payload.display_name)
    return _serialise_session(session)


@auth_router.post("/login")
def login(payload: CredentialsPayload, identity: IdentityProvider = Depends(get_identity)) -> Dict[str, object]:
    return _serialise_session(identity.login(payload.email, payload.password))


@auth_router.post("/logout")
def logout(
    session: Session = Depends(get_session),
    identity: IdentityProvider = Depends(get_identity),
) -> Dict[str, object]:
    identity.logout(session)
    return {"status": "ok"}


@auth_router.get("/me")
def me(session: Session = Depends(get_session)) -> Dict[str, object]:
    return _serialise_session(session)["user"]


@api_router.get("/foods")
def list_foods(
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    return {"items": [_serialise_food(item) for item in tracker.list_food_items(session)]}


@api_router.post("/foods", status_code=201)
def create_food(
    payload: FoodItemPayload,
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    item = tracker.create_food_item(
        session,
        name=payload.name,
        protein=payload.protein,
        carbs=payload.carbs,
        fat=payload.fat,
        serving_size=payload.serving_size,
        serving_unit=payload.serving_unit,
        calories=payload.calories,
    )
    return _serialise_food(item)


@api_router.get("/foods/{item_id}")
def get_food(
    item_id: str,
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    return _serialise_food(tracker.get_food_item(session, item_id))


@api_router.patch("/foods/{item_id}")
def update_food(
    item_id: str,
    payload: FoodItemUpdatePayload,
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return _serialise_food(tracker.update_food_item(session, item_id, **changes))


@api_router.delete("/foods/{item_id}", status_code=204)
def delete_food(
    item_id: str,
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> None:
    tracker.delete_food_item(session, item_id)


@api_router.get("/entries")
def list_entries(
    day: Optional[date] = Query(default=None, alias="date"),
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    entries = tracker.list_food_entries(session, day or date.today())
    return {"items": [_serialise_entry(entry) for entry in entries]}


@api_router.post("/entries", status_code=201)
def create_entry(
    payload: EntryPayload,
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    entry = tracker.create_food_entry(
        session,
        food_item_id=payload.food_item_id,
        servings=payload.servings,
        when=payload.date,
    )
    return _serialise_entry(entry)


@api_router.delete("/entries/{entry_id}", status_code=204)
def delete_entry(
    entry_id: str,
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> None:
    tracker.delete_food_entry(session, entry_id)


@api_router.get("/dashboard")
def dashboard(
    day: Optional[date] = Query(default=None, alias="date"),
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    summary = tracker.daily_summary(session, day or date.today())
    payload = summary.to_dict()
    payload["entries"] = [_serialise_entry(entry) for entry in summary.entries]
    payload["macros"] = macro_breakdown(summary)
    return payload


@api_router.get("/history")
def history(
    start: Optional[date] = Query(default=None),
    session: Session = Depends(get_session),
    tracker: NutritionTracker = Depends(get_tracker),
) -> Dict[str, object]:
    overview = tracker.weekly_overview(session, start)
    payload = overview.to_dict()
    for day_payload in payload["days"]:
        day_payload.pop("entries", None)
    return payload


app.include_router(auth_router)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("nutrition_tracker.api:app", host="0.0.0.0", port=8000, reload=True)
