"""chimpflow command line.

Commands:
- chimpflow ask <question>
- chimpflow intent <message>
- chimpflow context <messages.json>
- chimpflow knowledge stats
- chimpflow knowledge cleanup
- chimpflow knowledge show <query>
"""

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from chimpflow import __logo__, __version__
from chimpflow.config.loader import load_config, require_config
from chimpflow.conversation import ContextBuilder, ConversationIntelligence, ConversationMessage
from chimpflow.errors import ChimpflowError, ErrorKind
from chimpflow.graph.persistent_store import PersistentSharedStore
from chimpflow.knowledge import Author, ChatMessage, KnowledgeFlow, KnowledgeIntentDetector
from chimpflow.providers import LiteLLMProvider
from chimpflow.runtime import RuntimeState
from chimpflow.utils.logging import configure_logging

console = Console()

app = typer.Typer(
    name="chimpflow",
    help=f"{__logo__} chimpflow - conversation relevance and knowledge pipeline",
    no_args_is_help=True,
)
knowledge_app = typer.Typer(name="knowledge", help="Knowledge cache management commands")
app.add_typer(knowledge_app, name="knowledge")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} chimpflow v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on the console"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
):
    """Load configuration and set up logging before any command runs."""
    cfg = _load(config)
    configure_logging(cfg.logging, verbose=verbose)
    ctx.obj = RuntimeState.create(config=cfg)


def _load(path: Optional[Path]):
    try:
        return require_config(path) if path else load_config()
    except ChimpflowError as e:
        console.print(f"[red]{e.user_message()}[/red] [dim]{e.message}[/dim]")
        raise typer.Exit(1)


def _runtime(ctx: typer.Context) -> RuntimeState:
    return ctx.obj


def _open_store(runtime: RuntimeState) -> PersistentSharedStore:
    knowledge = runtime.config.knowledge
    return PersistentSharedStore(knowledge.store_file, save_delay=knowledge.save_debounce_seconds)


def _format_confidence(confidence: float) -> str:
    """Format a 0-100 confidence with color."""
    if confidence >= 70:
        return f"[green]{confidence:.0f}%[/green]"
    elif confidence >= 40:
        return f"[yellow]{confidence:.0f}%[/yellow]"
    else:
        return f"[red]{confidence:.0f}%[/red]"


async def _search_not_configured(query: str, *, max_results: int = 5) -> Dict[str, Any]:
    raise ChimpflowError(
        ErrorKind.API,
        "web search not configured",
        code="SEARCH_UNAVAILABLE",
        component="cli",
        operation="search",
        context={"query": query},
    )


@app.command()
def ask(
    ctx: typer.Context,
    question: str = typer.Argument(..., help="Question to answer"),
    user: str = typer.Option("cli-user", "--user", "-u", help="User id to ask as"),
    as_owner: bool = typer.Option(False, "--owner", help="Ask as the configured owner"),
):
    """Run a question through the knowledge pipeline."""
    runtime = _runtime(ctx)
    provider_cfg = runtime.config.provider
    provider = LiteLLMProvider(
        api_key=provider_cfg.api_key or None,
        api_base=provider_cfg.api_base,
        default_model=runtime.config.knowledge.model,
        extra_headers=provider_cfg.extra_headers,
    )
    user_id = runtime.config.knowledge.owner_id if as_owner and runtime.config.knowledge.owner_id else user

    async def run():
        flow = KnowledgeFlow(runtime, provider.complete, search=_search_not_configured)
        try:
            with console.status("[cyan]Thinking...[/cyan]", spinner="dots"):
                return await flow.process_knowledge_request(
                    ChatMessage(content=question, author=Author(id=user_id))
                )
        finally:
            await flow.shutdown()

    result = asyncio.run(run())

    console.print(Panel(Markdown(result.response), title=f"{__logo__} {result.type}"))
    details = f"confidence {_format_confidence(result.confidence)}"
    if result.truncated:
        details += f" • truncated from {result.original_length} chars"
    console.print(f"[dim]{details}[/dim]")
    if not result.success:
        raise typer.Exit(1)


@app.command()
def intent(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Message text"),
    reply_to_bot: bool = typer.Option(False, "--reply-to-bot", help="Message replies to the bot"),
):
    """Show how a message is classified."""
    runtime = _runtime(ctx)
    intelligence = ConversationIntelligence(runtime.config.conversation)
    bot_intent = intelligence.detect_bot_intent(
        message, is_reply=reply_to_bot, reply_to_bot_message=reply_to_bot
    )

    table = Table(title=f"{__logo__} Intent")
    table.add_column("Signal", style="cyan")
    table.add_column("Value")
    table.add_row("Bot-directed", "[green]yes[/green]" if bot_intent.is_bot_directed else "[dim]no[/dim]")
    table.add_row("Confidence", f"{bot_intent.confidence:.2f}")
    table.add_row("Patterns", ", ".join(bot_intent.patterns) or "-")

    detector = KnowledgeIntentDetector(runtime.config.knowledge.owner_id)
    content = message.lower()
    table.add_row("Needs information", str(detector.needs_information(content)))
    table.add_row("Needs code", str(detector.needs_code(content)))
    table.add_row("Query", detector.extract_query(content))
    console.print(table)


@app.command()
def context(
    ctx: typer.Context,
    messages_file: Path = typer.Argument(..., help="JSON array of messages"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", "-t"),
    min_relevance: Optional[float] = typer.Option(None, "--min-relevance"),
):
    """Select weighted context from a JSON message dump."""
    try:
        raw = json.loads(messages_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read {messages_file}: {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(raw, list):
        console.print("[red]Expected a JSON array of messages[/red]")
        raise typer.Exit(1)

    runtime = _runtime(ctx)
    messages = [ConversationMessage.from_dict(item) for item in raw]
    builder = ContextBuilder(ConversationIntelligence(runtime.config.conversation))
    selected = builder.build_weighted_context(
        messages, max_tokens=max_tokens, min_relevance=min_relevance, now=time.time()
    )

    table = Table(title=f"{__logo__} Context ({len(selected)}/{len(messages)} messages)")
    table.add_column("#", style="dim")
    table.add_column("User", style="cyan")
    table.add_column("Score")
    table.add_column("Bot", justify="center")
    table.add_column("Content")
    for item in selected:
        table.add_row(
            str(item.original_index),
            item.user_id or "-",
            f"{item.relevance_score:.2f}",
            "✓" if item.is_bot_directed else "",
            item.content[:80],
        )
    console.print(table)
    tokens = sum(builder.estimate_tokens(m.content) for m in selected)
    console.print(f"[dim]~{tokens} tokens[/dim]")


@knowledge_app.command("stats")
def knowledge_stats(ctx: typer.Context):
    """Show knowledge cache statistics."""
    store = _open_store(_runtime(ctx))
    stats = store.get_knowledge_stats()

    console.print(f"\n{__logo__} [bold]Knowledge Cache[/bold]")
    console.print(f"Cached queries: {stats['cached_queries']:,}")
    console.print(f"Searches: {stats['total_searches']:,}")
    console.print(f"Average confidence: {_format_confidence(stats['avg_confidence'])}")

    recent = stats["recent_searches"]
    if recent:
        table = Table(title="Recent searches")
        table.add_column("Query", style="cyan")
        table.add_column("Confidence")
        table.add_column("When", style="dim")
        for item in recent:
            when = time.strftime("%Y-%m-%d %H:%M", time.localtime(item.get("timestamp", 0)))
            table.add_row(item.get("query", ""), _format_confidence(item.get("confidence", 0)), when)
        console.print(table)


@knowledge_app.command("cleanup")
def knowledge_cleanup(ctx: typer.Context):
    """Remove stale, rarely used cache entries."""
    store = _open_store(_runtime(ctx))
    removed = store.cleanup_old_knowledge()

    if removed:
        asyncio.run(store.force_save())
        console.print(f"[green]Removed {removed} stale entries[/green]")
    else:
        console.print("[dim]Nothing to clean up[/dim]")


@knowledge_app.command("show")
def knowledge_show(ctx: typer.Context, query: str = typer.Argument(..., help="Cached query to show")):
    """Show a cached search result."""
    store = _open_store(_runtime(ctx))
    if not store.has_knowledge(query):
        console.print(f"[yellow]No cached result for: {query}[/yellow]")
        raise typer.Exit(1)

    entry = store.knowledge_cache[query.lower()]
    console.print(f"\n{__logo__} [bold green]{query}[/bold green]")
    console.print(f"Confidence: {_format_confidence(entry.confidence)}")
    console.print(f"Accessed: {entry.access_count} times")
    console.print(f"Cached: {time.strftime('%Y-%m-%d %H:%M', time.localtime(entry.timestamp))}")
    console.print_json(json.dumps(entry.result, default=str))


if __name__ == "__main__":
    app()
