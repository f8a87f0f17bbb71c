"""
Typer CLI for the coursepilot planning core.

Commands:
    coursepilot structure videos.json     - Cluster and balance a course into modules
    coursepilot plan videos.json          - Build a dated study plan with reviews
    coursepilot recommend videos.json     - Suggest pacing and clustering parameters
    coursepilot feedback --kind rating    - Record feedback in the preference profile
    coursepilot tune                      - Apply pending feedback to the profile
    coursepilot ab-test kmeans hierarchical - Compare two strategies on ratings
    coursepilot profile                   - Show the stored preference profile

Videos are read from a JSON list of {"id", "title", "duration"} objects,
duration in seconds (0 or missing when unknown).

Usage:
    coursepilot --help
    coursepilot plan course.json --session-minutes 45 --sessions-per-week 4
    coursepilot feedback --kind rating --strategy kmeans --rating 2
    coursepilot feedback --kind parameter_change --set preferred_session_minutes=45
"""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from coursepilot.adaptive.preference_learner import PreferenceLearner
from coursepilot.adaptive.profile_store import ProfileStore
from coursepilot.core.errors import InputError
from coursepilot.core.models import (
    CourseStructure,
    FeedbackEvent,
    FeedbackKind,
    PlanSettings,
    StrategyKind,
    VideoItem,
)
from coursepilot.pipeline import CoursePlanner
from coursepilot.study.duration_balancer import balance_metrics

app = typer.Typer(
    help="coursepilot: turn video playlists into balanced modules and study plans",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    """Configure logging for every command."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else get_settings().log_level)


# ========================================
# Helpers
# ========================================


def _load_items(path: Path) -> list[VideoItem]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        rprint(f"[red]✗[/red] Cannot read {path}: {e}")
        raise typer.Exit(code=1)

    if not isinstance(raw, list):
        rprint(f"[red]✗[/red] {path} must contain a JSON list of videos")
        raise typer.Exit(code=1)

    items = []
    for position, entry in enumerate(raw):
        if not isinstance(entry, dict):
            rprint(f"[red]✗[/red] Entry {position} is not an object ({path})")
            raise typer.Exit(code=1)
        try:
            duration = int(entry.get("duration") or 0)
        except (TypeError, ValueError):
            rprint(f"[red]✗[/red] Entry {position} has invalid duration {entry['duration']!r} ({path})")
            raise typer.Exit(code=1)
        items.append(VideoItem(id=str(entry.get("id", "")), title=str(entry.get("title", "")), duration=duration))
    return items


def _parse_assignments(assignments: list[str]) -> dict[str, Any]:
    """KEY=VALUE pairs into a parameter-change payload; factor.NAME=x sets a factor weight."""
    payload: dict[str, Any] = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        if not sep or not key.strip():
            rprint(f"[red]✗[/red] Expected KEY=VALUE, got '{assignment}'")
            raise typer.Exit(code=1)
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = value
        key = key.strip()
        if key.startswith("factor."):
            payload.setdefault("factor_weights", {})[key.removeprefix("factor.")] = parsed
        else:
            payload[key] = parsed
    return payload


def _plan_settings(**options) -> PlanSettings:
    try:
        return PlanSettings.parse({k: v for k, v in options.items() if v is not None})
    except InputError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)


def _format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "?"
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}m{secs:02d}s"


def _print_structure(structure: CourseStructure) -> None:
    meta = structure.metadata
    rprint(f"\n[bold cyan]Strategy:[/bold cyan] {meta.strategy.value}")
    rprint(f"  Rationale: {meta.rationale}")
    rprint(f"  Quality: {meta.quality.overall:.2f} (silhouette {meta.quality.silhouette:.2f})")
    if meta.keywords:
        rprint(f"  Keywords: {', '.join(meta.keywords)}")
    if meta.is_fallback:
        rprint("  [yellow]⚠ Fallback grouping[/yellow]")

    table = Table(title="Modules", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Videos", justify="right")
    table.add_column("Duration", justify="right", style="green")
    table.add_column("Utilization", justify="right")
    table.add_column("Difficulty", justify="right", style="yellow")

    for module in structure.modules:
        table.add_row(
            str(module.index + 1),
            module.title + (" [red](overflow)[/red]" if module.overflow else ""),
            str(len(module.member_ids)),
            _format_duration(module.total_duration),
            f"{module.utilization:.0%}",
            f"{module.difficulty:.2f}",
        )

    metrics = balance_metrics(list(structure.modules))
    table.add_section()
    table.add_row(
        "",
        "TOTAL",
        str(len(structure.items)),
        _format_duration(structure.total_duration),
        f"{metrics.mean_utilization:.0%}",
        "",
        style="bold",
    )
    console.print(table)


# ========================================
# Planning Commands
# ========================================


@app.command("structure")
def structure(
    videos: Path = typer.Argument(..., help="JSON list of videos"),
    session_minutes: int = typer.Option(60, "--session-minutes", "-m", help="Target session length"),
    buffer_percent: float = typer.Option(20.0, "--buffer", help="Allowed overrun of a module, in percent"),
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
) -> None:
    """Cluster a course and cut it into duration-balanced modules."""
    items = _load_items(videos)
    settings = _plan_settings(session_minutes=session_minutes, buffer_percent=buffer_percent)
    profile = ProfileStore(profile_path).load_or_default()

    try:
        result = CoursePlanner().structure_course(items, settings, profile)
    except InputError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    _print_structure(result)


@app.command("plan")
def plan(
    videos: Path = typer.Argument(..., help="JSON list of videos"),
    start: str | None = typer.Option(None, "--start", help="First study day (YYYY-MM-DD)"),
    sessions_per_week: int = typer.Option(3, "--sessions-per-week", "-s"),
    session_minutes: int = typer.Option(60, "--session-minutes", "-m"),
    buffer_percent: float = typer.Option(20.0, "--buffer"),
    weekends: bool = typer.Option(False, "--weekends/--no-weekends", help="Study on Saturdays and Sundays"),
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
) -> None:
    """
    Build a dated study plan with spaced review sessions.

    Examples:
        coursepilot plan course.json
        coursepilot plan course.json --start 2025-01-06 -s 5 --weekends
    """
    items = _load_items(videos)
    try:
        start_date = date.fromisoformat(start) if start else None
    except ValueError:
        rprint(f"[red]✗[/red] Invalid start date '{start}'")
        raise typer.Exit(code=1)

    settings = _plan_settings(
        start_date=start_date,
        sessions_per_week=sessions_per_week,
        session_minutes=session_minutes,
        buffer_percent=buffer_percent,
        include_weekends=weekends,
    )
    profile = ProfileStore(profile_path).load_or_default()

    try:
        run = CoursePlanner().run(items, settings, profile)
    except InputError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    _print_structure(run.structure)

    table = Table(title="Study Plan", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Date", style="cyan")
    table.add_column("Type")
    table.add_column("Modules")
    table.add_column("Duration", justify="right", style="green")
    table.add_column("Difficulty", justify="right", style="yellow")

    type_styles = {"introduction": "blue", "practice": "white", "review": "magenta", "assessment": "red"}
    for session in run.plan.sessions:
        style = type_styles[session.session_type.value]
        table.add_row(
            str(session.index + 1),
            session.date.strftime("%a %Y-%m-%d"),
            f"[{style}]{session.session_type.value}[/{style}]",
            ", ".join(str(m + 1) for m in session.module_indices),
            _format_duration(session.duration),
            f"{session.difficulty:.2f}",
        )
    console.print(table)

    summary = run.plan.summary()
    rprint(f"\n[bold green]✓[/bold green] {summary['total_sessions']} sessions, done by {summary['completion_date']}")
    for warning in run.plan.warnings:
        rprint(f"[yellow]⚠[/yellow] {warning}")


@app.command("recommend")
def recommend(
    videos: Path = typer.Argument(..., help="JSON list of videos"),
    sessions_per_week: int = typer.Option(3, "--sessions-per-week", "-s"),
    session_minutes: int = typer.Option(60, "--session-minutes", "-m"),
    weekends: bool = typer.Option(False, "--weekends/--no-weekends", help="Study on Saturdays and Sundays"),
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
) -> None:
    """Suggest pacing and clustering parameters for a course."""
    items = _load_items(videos)
    settings = _plan_settings(
        sessions_per_week=sessions_per_week,
        session_minutes=session_minutes,
        include_weekends=weekends,
    )
    profile = ProfileStore(profile_path).load_or_default()

    try:
        run = CoursePlanner().run(items, settings, profile)
    except InputError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    advice = run.recommendations
    suggested = PreferenceLearner(profile).recommended_parameters(len(items))

    table = Table(title="Recommendations", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("Suggested", justify="right", style="green")
    table.add_row("Sessions per week", str(settings.sessions_per_week), str(advice.sessions_per_week))
    table.add_row("Session minutes", str(settings.session_minutes), str(advice.session_minutes))
    table.add_row(
        "Similarity threshold",
        f"{profile.similarity_threshold:.2f}",
        f"{suggested.similarity_threshold:.2f}",
    )
    table.add_row(
        "Content vs duration",
        f"{profile.content_vs_duration_weight:.2f}",
        f"{suggested.content_vs_duration_weight:.2f}",
    )
    console.print(table)

    rprint(f"\n[bold cyan]Strategy:[/bold cyan] {advice.strategy} (complexity {advice.complexity:.2f})")
    rprint(f"  Estimated completion: {advice.completion_weeks} weeks")
    rprint(f"  Progression quality: {advice.progression.progression_quality:.2f}")
    if advice.break_points:
        rprint(f"  Breaks before modules: {', '.join(str(i + 1) for i in advice.break_points)}")
    for tip in advice.tips:
        rprint(f"  • {tip}")


# ========================================
# Preference Commands
# ========================================


@app.command("feedback")
def feedback(
    kind: FeedbackKind = typer.Option(..., "--kind", "-k", help="Feedback kind"),
    strategy: StrategyKind | None = typer.Option(None, "--strategy", help="Strategy the feedback is about"),
    rating: int | None = typer.Option(None, "--rating", "-r", min=1, max=5, help="Rating 1-5"),
    splits: int = typer.Option(0, "--splits", help="Modules split by hand"),
    merges: int = typer.Option(0, "--merges", help="Modules merged by hand"),
    assignments: list[str] = typer.Option(
        [], "--set", help="Parameter change as KEY=VALUE, repeatable (factor.NAME=x for factor weights)"
    ),
    course_id: str | None = typer.Option(None, "--course"),
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
) -> None:
    """
    Record one feedback event.

    Examples:
        coursepilot feedback -k rating --strategy kmeans -r 2
        coursepilot feedback -k manual_adjustment --splits 2
        coursepilot feedback -k parameter_change --set preferred_session_minutes=45 --set factor.content=0.8
    """
    if kind == FeedbackKind.MANUAL_ADJUSTMENT:
        payload = {"splits": splits, "merges": merges}
    elif kind == FeedbackKind.PARAMETER_CHANGE:
        payload = _parse_assignments(assignments)
    else:
        payload = {}

    try:
        event = FeedbackEvent(kind=kind, strategy=strategy, rating=rating, course_id=course_id, payload=payload)
    except ValidationError as e:
        rprint(f"[red]✗[/red] Invalid {kind.value} feedback: {e.error_count()} errors")
        for error in e.errors():
            rprint(f"  {error['msg']}")
        raise typer.Exit(code=1)

    store = ProfileStore(profile_path)
    learner = PreferenceLearner(store.load_or_default())
    learner.record_feedback(event)
    store.save(learner.get_profile())

    pending = len(learner.profile.feedback_history) - learner.profile.tuned_through
    rprint(f"[green]✓[/green] Recorded {kind.value} feedback ({pending} pending, run 'coursepilot tune')")


@app.command("tune")
def tune(
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
) -> None:
    """Apply pending feedback to the profile."""
    store = ProfileStore(profile_path)
    learner = PreferenceLearner(store.load_or_default())
    profile = learner.auto_tune()
    store.save(profile)

    rprint(f"[green]✓[/green] Profile tuned, similarity threshold {profile.similarity_threshold:.2f}")
    rprint(f"  Preferred strategy: {profile.preferred_strategy.value if profile.preferred_strategy else 'auto'}")


@app.command("ab-test")
def ab_test(
    variant_a: StrategyKind = typer.Argument(..., help="First strategy"),
    variant_b: StrategyKind = typer.Argument(..., help="Second strategy"),
    samples: int = typer.Option(10, "--samples", "-n", help="Ratings required per strategy"),
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
) -> None:
    """Compare two strategies on recorded ratings."""
    learner = PreferenceLearner(ProfileStore(profile_path).load_or_default())
    result = learner.run_ab_test(variant_a, variant_b, samples)

    rprint(f"\n[bold cyan]{variant_a.value} vs {variant_b.value}[/bold cyan]")
    rprint(f"  Samples: {result.samples_a} / {result.samples_b}")
    if result.p_value is not None:
        rprint(f"  p-value: {result.p_value:.4f}")
    if result.conclusive:
        rprint(f"[bold green]✓ Winner: {result.outcome}[/bold green]")
    else:
        rprint(f"[yellow]{result.outcome}[/yellow]")


@app.command("profile")
def profile(
    profile_path: Path | None = typer.Option(None, "--profile", help="Preference profile JSON"),
    reset: bool = typer.Option(False, "--reset", help="Replace the profile with defaults"),
) -> None:
    """Show (or reset) the stored preference profile."""
    store = ProfileStore(profile_path)
    if reset:
        store.save(PreferenceLearner().get_profile())
        rprint(f"[green]✓[/green] Reset profile at {store.path}")

    current = store.load_or_default()
    table = Table(title=f"Profile ({store.path})", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Similarity threshold", f"{current.similarity_threshold:.2f}")
    table.add_row("Preferred strategy", current.preferred_strategy.value if current.preferred_strategy else "auto")
    for kind, weight in current.strategy_weights.items():
        table.add_row(f"  weight: {kind.value}", f"{weight:.3f}")
    table.add_row("Content vs duration", f"{current.content_vs_duration_weight:.2f}")
    table.add_row("Session minutes", str(current.preferred_session_minutes or "plan default"))
    table.add_row("Experience", current.experience_level.value)
    table.add_row("Feedback events", str(len(current.feedback_history)))
    table.add_row("Satisfaction", f"{current.satisfaction_score:.2f}")
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
