"""Command line interface for the nutrition tracker."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date
from typing import Dict, Iterable

from .auth import Session
from .config import load_settings
from .errors import AuthenticationError, BackendUnavailable, NotFoundError, ValidationError
from .models import SERVING_UNITS, DailySummary
from .summary import WeeklyOverview, macro_breakdown
from .tracker import build_services


def _format_grams(value: float) -> str:
    return f"{value:.1f}g"


def _format_calories(value: float) -> str:
    return f"{value:.0f}"


def _print_daily_summary(summary: DailySummary) -> None:
    print(f"\n=== {summary.day.isoformat()} ===")
    for entry in summary.entries:
        time = entry.timestamp.strftime("%H:%M")
        print(
            f"[{time}] {entry.food_item_name} x{entry.servings:g} "
            f"({_format_calories(entry.calories)} kcal, P {_format_grams(entry.protein)}, "
            f"C {_format_grams(entry.carbs)}, F {_format_grams(entry.fat)})  id={entry.id}"
        )
    print(
        f"Total: {_format_calories(summary.total_calories)} kcal | "
        f"Protein {_format_grams(summary.total_protein)}, Carbs {_format_grams(summary.total_carbs)}, "
        f"Fat {_format_grams(summary.total_fat)}"
    )
    breakdown = macro_breakdown(summary)
    print(
        "Split: "
        + ", ".join(
            f"{macro} {values['percentage']:.1f}% ({_format_calories(values['calories'])} cal)"
            for macro, values in breakdown.items()
        )
    )


def _print_weekly_overview(overview: WeeklyOverview) -> None:
    print(f"Week of {overview.start.isoformat()} - {overview.end.isoformat()}")
    for day in overview.days():
        summary = overview.summary_for(day)
        label = day.strftime("%A, %b %d")
        if summary is None:
            print(f"  {label}: No entries recorded")
            continue
        print(
            f"  {label}: {_format_calories(summary.total_calories)} kcal, "
            f"P {_format_grams(summary.total_protein)}, C {_format_grams(summary.total_carbs)}, "
            f"F {_format_grams(summary.total_fat)}"
        )
    averages = overview.averages()
    print(
        f"Average per day: {_format_calories(averages['calories'])} kcal, "
        f"P {_format_grams(averages['protein'])}, C {_format_grams(averages['carbs'])}, "
        f"F {_format_grams(averages['fat'])}"
    )


def _parse_day(value: str | None) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid date '{value}'. Use YYYY-MM-DD format.") from e


class CLI:
    def __init__(self) -> None:
        settings = load_settings()
        logging.basicConfig(level=settings.log_level)
        self.tracker, self.identity = build_services(settings)

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description="Track food items, servings and macros")
        parser.add_argument("--email", default=os.environ.get("NUTRITION_TRACKER_EMAIL"))
        parser.add_argument("--password", default=os.environ.get("NUTRITION_TRACKER_PASSWORD"))
        sub = parser.add_subparsers(dest="command", required=True)

        register = sub.add_parser("register", help="Create an account")
        register.add_argument("new_email")
        register.add_argument("new_password")
        register.add_argument("--name", help="Display name")

        sub.add_parser("foods", help="List your food items")

        add = sub.add_parser("add-food", help="Define a food item")
        add.add_argument("name")
        add.add_argument("--protein", required=True, help="Grams of protein per serving")
        add.add_argument("--carbs", required=True, help="Grams of carbs per serving")
        add.add_argument("--fat", required=True, help="Grams of fat per serving")
        add.add_argument("--serving-size", required=True)
        add.add_argument("--unit", default="g", choices=SERVING_UNITS)
        add.add_argument("--calories", help="Defaults to the 4/4/9 estimate from the macros")

        edit = sub.add_parser("edit-food", help="Update fields of a food item")
        edit.add_argument("item_id")
        edit.add_argument("--name")
        edit.add_argument("--protein")
        edit.add_argument("--carbs")
        edit.add_argument("--fat")
        edit.add_argument("--calories")
        edit.add_argument("--serving-size")
        edit.add_argument("--unit", choices=SERVING_UNITS)

        remove_food = sub.add_parser("remove-food", help="Delete a food item")
        remove_food.add_argument("item_id")

        log_cmd = sub.add_parser("log", help="Log servings of a food item")
        log_cmd.add_argument("item_id")
        log_cmd.add_argument("--servings", default="1")
        log_cmd.add_argument("--date", help="Date in YYYY-MM-DD format. Defaults to today.")

        remove_entry = sub.add_parser("remove-entry", help="Delete a food entry")
        remove_entry.add_argument("entry_id")

        summary = sub.add_parser("summary", help="Show the summary for today or a given date")
        summary.add_argument("--date", help="Date in YYYY-MM-DD format. Defaults to today.")

        history = sub.add_parser("history", help="Show seven days of summaries")
        history.add_argument("--start", help="First day in YYYY-MM-DD format. Defaults to six days ago.")
        return parser

    def run(self, argv: Iterable[str] | None = None) -> None:
        args = self._build_parser().parse_args(list(argv) if argv is not None else None)
        try:
            if args.command == "register":
                self._handle_register(args)
                return
            session = self._login(args)
            handler = {
                "foods": self._handle_foods,
                "add-food": self._handle_add_food,
                "edit-food": self._handle_edit_food,
                "remove-food": self._handle_remove_food,
                "log": self._handle_log,
                "remove-entry": self._handle_remove_entry,
                "summary": self._handle_summary,
                "history": self._handle_history,
            }[args.command]
            handler(session, args)
        except (ValidationError, NotFoundError, AuthenticationError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except BackendUnavailable as e:
            print(f"Error: Storage is unavailable, please try again. {e}", file=sys.stderr)
            sys.exit(1)

    def _login(self, args: argparse.Namespace) -> Session:
        if not args.email or not args.password:
            raise AuthenticationError(
                "Provide --email and --password or set NUTRITION_TRACKER_EMAIL/NUTRITION_TRACKER_PASSWORD"
            )
        return self.identity.login(args.email, args.password)

    def _handle_register(self, args: argparse.Namespace) -> None:
        session = self.identity.register(args.new_email, args.new_password, display_name=args.name)
        print(f"Registered {session.email}")

    def _handle_foods(self, session: Session, args: argparse.Namespace) -> None:
        items = self.tracker.list_food_items(session)
        if not items:
            print("No food items found. Use 'add-food' to define one.")
            return
        for item in items:
            print(
                f"- {item.name} ({_format_calories(item.calories)} kcal per {item.serving_size:g} {item.serving_unit}) "
                f"[P {_format_grams(item.protein)}, C {_format_grams(item.carbs)}, F {_format_grams(item.fat)}] "
                f"id={item.id}"
            )

    def _handle_add_food(self, session: Session, args: argparse.Namespace) -> None:
        item = self.tracker.create_food_item(
            session,
            name=args.name,
            protein=args.protein,
            carbs=args.carbs,
            fat=args.fat,
            serving_size=args.serving_size,
            serving_unit=args.unit,
            calories=args.calories,
        )
        print(f"Added {item.name} ({_format_calories(item.calories)} kcal) id={item.id}")

    def _handle_edit_food(self, session: Session, args: argparse.Namespace) -> None:
        changes: Dict[str, object] = {}
        for option, field_name in (
            ("name", "name"),
            ("protein", "protein"),
            ("carbs", "carbs"),
            ("fat", "fat"),
            ("calories", "calories"),
            ("serving_size", "serving_size"),
            ("unit", "serving_unit"),
        ):
            value = getattr(args, option)
            if value is not None:
                changes[field_name] = value
        item = self.tracker.update_food_item(session, args.item_id, **changes)
        print(f"Updated {item.name}")

    def _handle_remove_food(self, session: Session, args: argparse.Namespace) -> None:
        self.tracker.delete_food_item(session, args.item_id)
        print(f"Deleted food item {args.item_id}")

    def _handle_log(self, session: Session, args: argparse.Namespace) -> None:
        when = _parse_day(args.date) if args.date else None
        entry = self.tracker.create_food_entry(session, args.item_id, servings=args.servings, when=when)
        print(
            f"Logged {entry.food_item_name} x{entry.servings:g} "
            f"({_format_calories(entry.calories)} kcal, P {_format_grams(entry.protein)}, "
            f"C {_format_grams(entry.carbs)}, F {_format_grams(entry.fat)})"
        )

    def _handle_remove_entry(self, session: Session, args: argparse.Namespace) -> None:
        self.tracker.delete_food_entry(session, args.entry_id)
        print(f"Deleted food entry {args.entry_id}")

    def _handle_summary(self, session: Session, args: argparse.Namespace) -> None:
        target_day = _parse_day(args.date)
        summary = self.tracker.daily_summary(session, target_day)
        if not summary.entries:
            print(f"No entries for {target_day.isoformat()} yet.")
            return
        _print_daily_summary(summary)

    def _handle_history(self, session: Session, args: argparse.Namespace) -> None:
        start = _parse_day(args.start) if args.start else None
        _print_weekly_overview(self.tracker.weekly_overview(session, start))


def run(argv: Iterable[str] | None = None) -> None:
    CLI().run(argv)


if __name__ == "__main__":
    run()
