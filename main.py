import argparse
import asyncio
import sys

from stagescore.logging.setup import setup_logging

setup_logging()

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm
from rich.table import Table

from stagescore.engine.errors import StageScoreError
from stagescore.engine.session import ScoringSession
from stagescore.engine.standings import progress_stats, school_leaderboard
from stagescore.models.enums import Scope
from stagescore.storage.base import RecordStore
from stagescore.storage.factory import create_record_store

console = Console()


def render_teams(session: ScoringSession) -> None:
    teams = session.visible_teams()
    stats = progress_stats(teams, session.scope)
    table = Table(title=f"{session.activity_id} ({session.scope.value})")
    table.add_column("#", justify="right")
    table.add_column("Team")
    table.add_column("School")
    table.add_column("Score", justify="right")
    table.add_column("Medal")
    table.add_column("Rank", justify="center")
    table.add_column("", justify="center")

    for index, team in enumerate(teams, start=1):
        values = session.resolve(team.team_id)
        dirty = "*" if session.overlay.is_dirty(team.team_id) else ""
        table.add_row(
            str(index),
            team.team_name or team.team_id,
            session.snapshot.school_name(team),
            values.score or "-",
            session.medal_for(team.team_id) or "not yet scored",
            session.rank_for(team.team_id) or "-",
            dirty,
        )
    console.print(table)
    console.print(
        f"Recorded {stats.recorded} / {stats.total} teams ({stats.percent}%)"
    )


async def cmd_standings(store: RecordStore, args: argparse.Namespace) -> int:
    session = await ScoringSession.open(store, args.activity, args.scope, args.cluster)
    session.search = args.search or ""
    render_teams(session)
    return 0


async def cmd_auto_rank(store: RecordStore, args: argparse.Namespace) -> int:
    session = await ScoringSession.open(store, args.activity, args.scope, args.cluster)
    changed = session.auto_rank()
    render_teams(session)
    if not changed:
        console.print("Ranks are already up to date.")
        return 0
    if not args.save:
        console.print(f"{len(changed)} ranks changed. Re-run with --save to store them.")
        return 0

    result = await session.save_all()
    if result.status == "success":
        console.print(f"[green]Saved {result.summary()}.[/green]")
        return 0
    if result.status == "partial":
        console.print(f"[yellow]Saved {result.summary()}. Unsaved: {', '.join(result.failed_ids)}[/yellow]")
    else:
        console.print(f"[red]Nothing saved ({result.summary()}).[/red]")
    return 1


async def cmd_reset(store: RecordStore, args: argparse.Namespace) -> int:
    session = await ScoringSession.open(store, args.activity, args.scope, args.cluster)
    teams = session.teams()
    console.print(
        Panel(
            f"This clears score, rank, medal and flag of {len(teams)} teams "
            f"({args.scope.value} stage, activity {args.activity}). It cannot be undone.",
            title="Reset results",
            border_style="red",
        )
    )
    if not args.yes and not Confirm.ask("Continue?", default=False):
        console.print("Reset cancelled.")
        return 0

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Resetting", total=len(teams))
        result = await session.reset(
            on_progress=lambda event: progress.update(task, completed=event.current)
        )

    style = {"success": "green", "partial": "yellow", "failed": "red"}[result.status]
    console.print(f"[{style}]Reset {result.summary()} in {result.elapsed:.1f}s.[/{style}]")
    return 0 if result.status == "success" else 1


async def cmd_leaderboard(store: RecordStore, args: argparse.Namespace) -> int:
    snapshot = await store.fetch_snapshot()
    table = Table(title=f"School leaderboard ({args.scope.value})")
    table.add_column("School")
    table.add_column("Gold", justify="right")
    table.add_column("Silver", justify="right")
    table.add_column("Entries", justify="right")
    table.add_column("Average", justify="right")
    for standing in school_leaderboard(snapshot, args.scope):
        table.add_row(
            standing.school_name,
            str(standing.gold),
            str(standing.silver),
            str(standing.entries),
            f"{standing.average_score:.2f}",
        )
    console.print(table)
    return 0


COMMANDS = {
    "standings": cmd_standings,
    "auto-rank": cmd_auto_rank,
    "reset": cmd_reset,
    "leaderboard": cmd_leaderboard,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Competition scoring and ranking engine")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_scope(p: argparse.ArgumentParser) -> None:
        p.add_argument("--scope", type=Scope, choices=list(Scope), default=Scope.CLUSTER)

    def add_activity(p: argparse.ArgumentParser) -> None:
        p.add_argument("--activity", required=True, help="Activity ID")
        p.add_argument("--cluster", help="Restrict cluster screens to one cluster ID")
        add_scope(p)

    p_standings = sub.add_parser("standings", help="Show teams with medals and ranks")
    add_activity(p_standings)
    p_standings.add_argument("--search", help="Filter by team name, team ID or school")

    p_rank = sub.add_parser("auto-rank", help="Compute ranks from scores")
    add_activity(p_rank)
    p_rank.add_argument("--save", action="store_true", help="Store the computed ranks")

    p_reset = sub.add_parser("reset", help="Clear all results of an activity")
    add_activity(p_reset)
    p_reset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    p_board = sub.add_parser("leaderboard", help="School medal tally")
    add_scope(p_board)
    return parser


async def main(argv=None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    store = None
    try:
        store = await create_record_store()
        return await COMMANDS[args.command](store, args)
    except StageScoreError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        if store:
            await store.close()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)
