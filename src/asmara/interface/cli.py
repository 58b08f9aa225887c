"""asmara CLI — deck management, due listing and interactive study."""

import asyncio
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from asmara.application.config import AppConfig, resolve_config
from asmara.domain.errors import AsmaraError, InvalidRatingError, StorageError
from asmara.domain.models import Rating

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="asmara: spaced-repetition flashcards in your terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

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
# Subgroups
# ---------------------------------------------------------------------------

deck_app = typer.Typer(help="Create, list, inspect and delete decks.", no_args_is_help=True)
app.add_typer(deck_app, name="deck")

card_app = typer.Typer(help="Add, browse, edit and delete cards.", no_args_is_help=True)
app.add_typer(card_app, name="card")

config_app = typer.Typer(help="Manage asmara configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")

RATING_LABELS = {
    Rating.AGAIN: "Again",
    Rating.HARD: "Hard",
    Rating.GOOD: "Good",
    Rating.EASY: "Easy",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context) -> AppConfig:
    obj = ctx.obj or {}
    return resolve_config(
        {
            "data_dir": obj.get("data_dir"),
            "backend": obj.get("backend"),
            "verbose": obj.get("verbose_bonus"),
        }
    )


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg="red", err=True)
    raise typer.Exit(1)


def format_delay(delta: timedelta) -> str:
    """Compact human form of a delay: 45s, 10m, 3h, 4d, 34.5d."""
    seconds = delta.total_seconds()
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{round(seconds / 60)}m"
    if seconds < 86400:
        return f"{round(seconds / 3600)}h"
    days = seconds / 86400
    return f"{days:.0f}d" if days.is_integer() else f"{days:.1f}d"


def _parse_steps(value: str | None) -> list[float] | None:
    if not value:
        return None
    try:
        return [float(s) for s in value.split(",") if s.strip()]
    except ValueError:
        raise typer.BadParameter(f"Expected comma-separated minutes, got {value!r}") from None


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding decks and the review log.")
    ] = None,
    backend: Annotated[
        str | None, typer.Option(help="Storage backend: yaml or memory.")
    ] = None,
):
    """Global settings for asmara."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose
    ctx.obj["data_dir"] = data_dir
    ctx.obj["backend"] = backend
    if verbose > 1:
        logging.getLogger("asmara").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Deck subgroup
# ---------------------------------------------------------------------------


@deck_app.command("create")
def deck_create(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    learning_steps: Annotated[
        str | None, typer.Option(help="Learning steps in minutes, e.g. '1,10'.")
    ] = None,
    relearning_steps: Annotated[
        str | None, typer.Option(help="Relearning steps in minutes, e.g. '1,10'.")
    ] = None,
    graduating_interval: Annotated[
        float | None, typer.Option(help="Days until first review after graduating.")
    ] = None,
    easy_interval: Annotated[
        float | None, typer.Option(help="Days until first review after an Easy grade.")
    ] = None,
):
    """Create an empty deck, optionally overriding scheduling defaults."""
    from asmara.application.factory import get_card_store

    overrides = {
        "learningStepsMinutes": _parse_steps(learning_steps),
        "relearningStepsMinutes": _parse_steps(relearning_steps),
        "graduatingIntervalDays": graduating_interval,
        "easyIntervalDays": easy_interval,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    store = get_card_store(_config(ctx))

    try:
        asyncio.run(store.create_deck(deck, overrides))
    except AsmaraError as e:
        _fail(str(e))
    typer.secho(f"Created deck '{deck}'.", fg="green")


@deck_app.command("show")
def deck_show(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the resolved scheduling configuration and card counts."""
    from asmara.application.deck_config import deck_config_to_document
    from asmara.application.factory import get_card_store

    store = get_card_store(_config(ctx))

    async def run():
        return await store.load_deck_config(deck), await store.list_cards(deck)

    try:
        deck_config, cards = asyncio.run(run())
    except AsmaraError as e:
        _fail(str(e))

    counts: dict[str, int] = {}
    for card in cards:
        counts[card.status.value] = counts.get(card.status.value, 0) + 1

    if json_output:
        typer.echo(
            json.dumps(
                {"deck": deck, "config": deck_config_to_document(deck_config), "cards": counts},
                indent=2,
            )
        )
        return

    typer.echo(f"Deck: {deck}")
    typer.echo(f"  Learning steps (min):   {list(deck_config.learning_steps)}")
    typer.echo(f"  Relearning steps (min): {list(deck_config.relearning_steps)}")
    typer.echo(f"  Graduating interval:    {deck_config.graduating_interval_days}d")
    typer.echo(f"  Easy interval:          {deck_config.easy_interval_days}d")
    typer.echo(
        "Cards: "
        + "  ".join(f"{s}={counts.get(s, 0)}" for s in ("new", "learning", "relearning", "review"))
    )


@deck_app.command("list")
def deck_list(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List every deck with its card count."""
    from asmara.application.factory import get_card_store

    store = get_card_store(_config(ctx))

    async def run():
        return [(d, len(await store.list_cards(d))) for d in await store.list_decks()]

    try:
        decks = asyncio.run(run())
    except AsmaraError as e:
        _fail(str(e))

    if json_output:
        typer.echo(json.dumps([{"deck": d, "cards": n} for d, n in decks], indent=2))
        return
    if not decks:
        typer.secho("No decks yet. Create one with 'asmara deck create'.", fg="yellow")
        return
    for deck_id, count in decks:
        typer.echo(f"{deck_id:<30} {count} cards")


@deck_app.command("delete")
def deck_delete(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation for destructive actions.")
    ] = False,
):
    """Delete a deck and every card in it."""
    from asmara.application.factory import get_card_store

    store = get_card_store(_config(ctx))
    if not force:
        typer.confirm(f"Delete deck '{deck}' and all of its cards?", abort=True)

    try:
        removed = asyncio.run(store.delete_deck(deck))
    except AsmaraError as e:
        _fail(str(e))
    typer.secho(f"Deleted deck '{deck}' ({removed} cards).", fg="green")


# ---------------------------------------------------------------------------
# Card subgroup
# ---------------------------------------------------------------------------


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    front: Annotated[str, typer.Argument(help="Question side.")],
    back: Annotated[str, typer.Argument(help="Answer side.")],
    tag: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable).")] = None,
):
    """Add a new card, due immediately."""
    from ulid import ULID

    from asmara.application.factory import get_card_store
    from asmara.application.study_service import utc_now
    from asmara.domain.models import new_card

    config = _config(ctx)
    store = get_card_store(config)
    card = new_card(
        str(ULID()),
        utc_now(),
        front=front,
        back=back,
        tags=tag or [],
        ease_factor=config.default_ease_factor,
    )

    try:
        asyncio.run(store.add_card(deck, card))
    except AsmaraError as e:
        _fail(str(e))
    typer.echo(card.id)


@card_app.command("list")
def card_list(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Browse every card of a deck, due or not."""
    from asmara.application.factory import get_card_store

    store = get_card_store(_config(ctx))
    try:
        cards = asyncio.run(store.list_cards(deck))
    except AsmaraError as e:
        _fail(str(e))

    if json_output:
        typer.echo(json.dumps([{"id": c.id, **c.to_document()} for c in cards], indent=2))
        return
    if not cards:
        typer.secho("Deck has no cards.", fg="yellow")
        return
    for card in cards:
        tags = f"  [{', '.join(card.tags)}]" if card.tags else ""
        typer.echo(
            f"{card.id}  {card.status.value:<10} due {card.due_date:%Y-%m-%d %H:%M}  "
            f"{card.front[:40]} -> {card.back[:40]}{tags}"
        )


@card_app.command("edit")
def card_edit(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    card_id: Annotated[str, typer.Argument(help="Card identifier.")],
    front: Annotated[str | None, typer.Option(help="New question side.")] = None,
    back: Annotated[str | None, typer.Option(help="New answer side.")] = None,
    tags: Annotated[
        str | None, typer.Option(help="Comma-separated tags replacing the current ones.")
    ] = None,
):
    """Edit a card's content. Its schedule is left untouched."""
    from asmara.application.factory import get_card_store

    if front is None and back is None and tags is None:
        raise typer.BadParameter("Nothing to change: pass --front, --back or --tags.")

    store = get_card_store(_config(ctx))
    try:
        card = asyncio.run(
            store.update_card_content(
                deck,
                card_id,
                front=front,
                back=back,
                tags=tags.split(",") if tags is not None else None,
            )
        )
    except AsmaraError as e:
        _fail(str(e))
    typer.secho(f"Updated card {card.id}.", fg="green")


@card_app.command("delete")
def card_delete(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    card_id: Annotated[str, typer.Argument(help="Card identifier.")],
):
    """Delete a single card."""
    from asmara.application.factory import get_card_store

    store = get_card_store(_config(ctx))
    try:
        asyncio.run(store.delete_card(deck, card_id))
    except AsmaraError as e:
        _fail(str(e))
    typer.secho(f"Deleted card {card_id}.", fg="green")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command("due")
def due(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List the deck's due cards in study order."""
    from asmara.application.factory import get_card_store
    from asmara.application.session_queue import SessionQueue
    from asmara.application.study_service import utc_now

    store = get_card_store(_config(ctx))
    now = utc_now()

    try:
        cards = asyncio.run(store.load_due_cards(deck, now))
    except AsmaraError as e:
        _fail(str(e))

    ordered = SessionQueue.load(cards, now).snapshot()

    if json_output:
        typer.echo(
            json.dumps(
                [{"id": c.id, **c.to_document()} for c in ordered],
                indent=2,
            )
        )
        return

    if not ordered:
        typer.secho("No cards due.", fg="yellow")
        return

    typer.echo(f"Due cards: {len(ordered)}")
    for i, card in enumerate(ordered, start=1):
        typer.echo(f"  [{i}] {card.status.value:<10} {card.front[:60]}")


@app.command("search")
def search(
    ctx: typer.Context,
    term: Annotated[str, typer.Argument(help="Text to look for in deck names and cards.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Search every deck by name and card content."""
    from asmara.application.factory import get_card_store
    from asmara.application.search_service import SearchService

    service = SearchService(get_card_store(_config(ctx)))
    try:
        result = asyncio.run(service.search(term))
    except AsmaraError as e:
        _fail(str(e))

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "decks": result.decks,
                    "cards": [{"deck": d, "id": c.id, **c.to_document()} for d, c in result.cards],
                    "skipped": result.skipped,
                },
                indent=2,
            )
        )
        return

    if not result.decks and not result.cards:
        typer.secho(f"Nothing matches '{term}'.", fg="yellow")
    if result.decks:
        typer.echo(f"Decks ({len(result.decks)}):")
        for deck_id in result.decks:
            typer.echo(f"  {deck_id}")
    if result.cards:
        typer.echo(f"Cards ({len(result.cards)}):")
        for deck_id, card in result.cards:
            typer.echo(f"  {deck_id}/{card.id}  {card.front[:40]} -> {card.back[:40]}")
    for deck_id in result.skipped:
        typer.secho(f"Warning: deck '{deck_id}' could not be read.", fg="yellow")


@app.command("study")
def study(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck identifier.")],
):
    """[bold green]Study[/bold green] a deck's due cards interactively."""
    from asmara.application.factory import get_card_store, get_review_recorder
    from asmara.application.study_service import StudySession

    config = _config(ctx)
    session = StudySession(
        get_card_store(config),
        get_review_recorder(config),
        deck,
        tunables=config.tunables(),
    )

    async def run():
        try:
            await session.start()
        except AsmaraError as e:
            _fail(str(e))

        if session.is_finished:
            typer.secho("No cards due. Come back later!", fg="green")
            return

        studied = 0
        while not session.is_finished:
            card = session.current
            typer.echo("")
            typer.secho(f"[{session.remaining} left] {card.front}", bold=True)
            typer.prompt("Press Enter to show the answer", default="", show_default=False)
            typer.echo(card.back or "(empty)")

            try:
                outcomes = session.preview_current()
            except AsmaraError as e:
                _fail(f"Cannot schedule card {card.id}: {e}")

            buttons = []
            for r, res in outcomes.items():
                delay = format_delay(res.card.due_date - res.card.last_reviewed)
                buttons.append(f"{int(r)} {RATING_LABELS[r]} ({delay})")
            typer.echo("  ".join(buttons))

            answer = typer.prompt("Grade [1-4, q to quit]").strip().lower()
            if answer == "q":
                break
            try:
                outcome = await session.grade(answer)
            except InvalidRatingError as e:
                typer.secho(str(e), fg="yellow")
                continue
            except StorageError as e:
                _fail(f"Could not save your answer: {e}")
            except AsmaraError as e:
                _fail(str(e))

            studied += 1
            if not outcome.recorded:
                typer.secho("Warning: review was not logged for statistics.", fg="yellow")

        typer.secho(f"Session over. Cards graded: {studied}.", fg="green")

    asyncio.run(run())


@app.command("serve")
def serve(
    ctx: typer.Context,
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP study server."""
    import uvicorn

    config = _config(ctx)
    uvicorn.run(
        "asmara.server:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


@config_app.command("path")
def config_path():
    """Print where asmara looks for its config file."""
    from asmara.application.config import config_files

    for f in config_files():
        marker = "*" if f.exists() else " "
        typer.echo(f"{marker} {f}")
