"""Solrise CLI: catalog, user sync, incremental watch, stats and problem views."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from solrise.application.config import AppConfig, resolve_config
from solrise.application.session import TrackerSession
from solrise.application.stats.insights import CatalogInsights, tag_counts
from solrise.application.stats.queries import SortOrder, filter_problems, unsolved_attempts
from solrise.domain.constants import PROBLEMS_PAGE_SIZE, UNSOLVED_LIMIT
from solrise.domain.errors import NetworkError, SolriseError
from solrise.domain.validation import sanitize_input

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="solrise: Track your Codeforces progress against the full problemset.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage solrise configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Show debug logs."),
    ] = 0,
):
    """Global settings for solrise."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.getLogger("solrise").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_session(config: AppConfig) -> TrackerSession:
    from solrise.application.factory import create_session

    return create_session(config)


def _run(
    work: Callable[[TrackerSession], Awaitable[T]],
    cache_path: Path | None = None,
) -> T:
    """Run ``work`` against a fresh session, mapping engine errors to exit code 1."""
    config = resolve_config({"cache_path": cache_path})
    session = _build_session(config)

    async def runner() -> T:
        try:
            return await work(session)
        finally:
            await session.close()

    try:
        return asyncio.run(runner())
    except SolriseError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _read_handle(raw: str) -> str:
    """Clean a handle typed on the command line; validation happens in the session."""
    return sanitize_input(raw.strip())


def _stats_payload(session: TrackerSession) -> dict[str, Any]:
    summary = CatalogInsights().summarize(session.catalog, session.state)
    profile = session.profile
    return {
        "handle": session.handle,
        "rating": profile.rating if profile else None,
        "rank": profile.rank if profile else None,
        "submissions": len(session.ledger),
        "solved": len(session.solved_set),
        "attempted_unsolved": len(session.attempted_unsolved),
        "solved_in_catalog": session.solved_in_catalog,
        "attempted_in_catalog": session.attempted_in_catalog,
        "untouched_in_catalog": session.untouched_in_catalog,
        "streak": session.streak,
        "active_days": len(session.daily_counts),
        "average_rating": summary.average_rating,
        "hardest_solved": summary.hardest_solved,
        "most_active_tag": summary.most_active_tag,
        "completion_rate": summary.completion_rate,
        "rating_buckets": [asdict(b) for b in summary.rating_buckets],
    }


def _print_stats(session: TrackerSession, json_output: bool) -> None:
    payload = _stats_payload(session)
    if json_output:
        typer.echo(json.dumps(payload, indent=2))
        return

    rating = payload["rating"] if payload["rating"] is not None else "unrated"
    typer.secho(f"{payload['handle']}  (rating {rating})", bold=True)
    typer.echo(
        f"Solved: {payload['solved_in_catalog']}  "
        f"Attempted: {payload['attempted_in_catalog']}  "
        f"Untouched: {payload['untouched_in_catalog']}"
    )
    typer.echo(f"Streak: {payload['streak']} day(s)  Active days: {payload['active_days']}")
    if payload["most_active_tag"]:
        typer.echo(
            f"Average rating: {payload['average_rating']}  "
            f"Hardest: {payload['hardest_solved']}  "
            f"Top tag: {payload['most_active_tag']}  "
            f"Completion: {payload['completion_rate']}%"
        )


CachePathOption = Annotated[
    Path | None, typer.Option("--cache-path", help="Override the persistent cache file.")
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON.")]


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def catalog(
    json_output: JsonOption = False,
    top: Annotated[int, typer.Option(help="Number of tags to list.")] = 10,
    cache_path: CachePathOption = None,
):
    """Load the problem catalog (cached for 6 hours) and summarize it."""

    async def work(session: TrackerSession):
        return await session.load_catalog()

    items = _run(work, cache_path)
    tags = sorted(tag_counts(items).items(), key=lambda kv: kv[1], reverse=True)[:top]

    if json_output:
        typer.echo(json.dumps({"problems": len(items), "tags": dict(tags)}, indent=2))
        return

    typer.secho(f"Problems: {len(items)}", fg="green")
    for tag, count in tags:
        typer.echo(f"  {tag}: {count}")


@app.command()
def sync(
    handle: Annotated[str, typer.Argument(help="Codeforces handle.")],
    json_output: JsonOption = False,
    cache_path: CachePathOption = None,
):
    """[bold green]Sync[/bold green] a user's full submission history and show stats."""

    async def work(session: TrackerSession):
        await session.init_user(_read_handle(handle))
        _print_stats(session, json_output)

    _run(work, cache_path)


@app.command()
def stats(
    json_output: JsonOption = False,
    cache_path: CachePathOption = None,
):
    """Show stats for the handle remembered from the last sync."""

    async def work(session: TrackerSession):
        restored = await session.init()
        if restored is None or session.handle is None:
            return False
        _print_stats(session, json_output)
        return True

    if not _run(work, cache_path):
        typer.secho("No handle stored. Run 'solrise sync HANDLE' first.", fg="yellow")
        raise typer.Exit(1)


@app.command()
def unsolved(
    limit: Annotated[
        int, typer.Option(help="Maximum problems to list (0 = all).")
    ] = UNSOLVED_LIMIT,
    json_output: JsonOption = False,
    cache_path: CachePathOption = None,
):
    """List attempted-but-unsolved problems for the stored handle, newest first."""

    async def work(session: TrackerSession):
        restored = await session.init()
        if restored is None or session.handle is None:
            return None
        return unsolved_attempts(session.state, limit or None)

    attempts = _run(work, cache_path)
    if attempts is None:
        typer.secho("No handle stored. Run 'solrise sync HANDLE' first.", fg="yellow")
        raise typer.Exit(1)

    if json_output:
        payload = [
            {
                "key": info.key,
                "name": info.name,
                "attempts": info.attempts,
                "last_outcome": info.last_outcome,
                "last_timestamp": info.last_timestamp,
                "link": info.link,
            }
            for info in attempts
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not attempts:
        typer.secho("No attempted-but-unsolved problems. Great work!", fg="green")
        return
    for info in attempts:
        typer.echo(
            f"{info.key:<10} {info.name or '':<32} "
            f"{info.attempts} attempt(s), last {info.last_outcome or 'pending'}  {info.link}"
        )


@app.command()
def problems(
    rating: Annotated[int | None, typer.Option(help="Exact rating.")] = None,
    min_rating: Annotated[int | None, typer.Option(help="Lowest rating (inclusive).")] = None,
    max_rating: Annotated[int | None, typer.Option(help="Highest rating (inclusive).")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", help="Required tag. Repeat to require several.")
    ] = None,
    sort: Annotated[SortOrder, typer.Option(help="Result order.")] = SortOrder.NEWEST,
    hide_solved: Annotated[
        bool, typer.Option("--hide-solved", help="Skip problems the stored handle solved.")
    ] = False,
    limit: Annotated[int, typer.Option(help="Problems per page.")] = PROBLEMS_PAGE_SIZE,
    page: Annotated[int, typer.Option(min=1, help="Page number, starting at 1.")] = 1,
    json_output: JsonOption = False,
    cache_path: CachePathOption = None,
):
    """Browse the catalog by rating and tags."""

    async def work(session: TrackerSession):
        if hide_solved:
            if await session.init() is None:
                logger.warning("No handle stored; --hide-solved has nothing to hide")
        else:
            await session.load_catalog()
        return filter_problems(
            session.catalog,
            rating=rating,
            min_rating=min_rating,
            max_rating=max_rating,
            tags=tag or (),
            solved=session.solved_set,
            hide_solved=hide_solved,
            sort=sort,
        )

    matches = _run(work, cache_path)
    start = (page - 1) * limit
    shown = matches[start : start + limit]

    if json_output:
        payload = {
            "total": len(matches),
            "page": page,
            "problems": [
                {
                    "key": item.key,
                    "name": item.name,
                    "rating": item.rating,
                    "tags": list(item.tags),
                    "popularity": item.popularity,
                    "link": item.link,
                }
                for item in shown
            ],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.secho(f"{len(matches)} problem(s), page {page}", fg="green")
    for item in shown:
        rated = item.rating if item.rating is not None else "-"
        typer.echo(
            f"{item.key:<10} {item.name:<32} {rated:>5}  "
            f"solved by {item.popularity}  {item.link}"
        )


@app.command()
def watch(
    handle: Annotated[
        str | None, typer.Argument(help="Codeforces handle. Defaults to the stored one.")
    ] = None,
    contest: Annotated[
        int | None, typer.Option(help="Only poll submissions for this contest.")
    ] = None,
    interval: Annotated[float, typer.Option(help="Seconds between refreshes.")] = 60.0,
    iterations: Annotated[
        int, typer.Option(help="Number of refreshes (0 = until interrupted).")
    ] = 0,
    cache_path: CachePathOption = None,
):
    """Sync once, then poll for new submissions and report changes."""

    async def work(session: TrackerSession):
        target = _read_handle(handle) if handle else session.persisted_handle()
        if target is None:
            typer.secho("No handle given or stored.", fg="yellow")
            return
        await session.init_user(target)
        typer.echo(
            f"Watching {session.handle}: {len(session.solved_set)} solved, "
            f"streak {session.streak}"
        )

        done = 0
        while iterations == 0 or done < iterations:
            await asyncio.sleep(interval)
            try:
                await session.load_catalog()
            except NetworkError as e:
                logger.warning(f"Catalog refresh failed: {e}")
            if contest is not None:
                added = await session.refresh_user_scoped(target, contest)
            else:
                added = await session.refresh_user(target)
            done += 1
            if added:
                typer.secho(
                    f"+{added} submission(s): {len(session.solved_set)} solved, "
                    f"streak {session.streak}",
                    fg="green",
                )

    try:
        _run(work, cache_path)
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@app.command()
def clear(
    all_: Annotated[
        bool, typer.Option("--all", help="Also drop the cached catalog.")
    ] = False,
    cache_path: CachePathOption = None,
):
    """Forget the stored handle (and optionally the cached catalog)."""

    async def work(session: TrackerSession):
        if all_:
            session.reset()
        else:
            session.clear_user()

    _run(work, cache_path)
    typer.secho("Cleared.", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
