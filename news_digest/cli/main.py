"""CLI commands for the news digest."""

import json
import logging
import re
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import NoReturn

import click
import structlog

from news_digest import __version__
from news_digest.clustering.engine import ClusterEngine
from news_digest.config.errors import ConfigurationError
from news_digest.config.loader import ConfigLoader
from news_digest.config.schemas import Settings, UserProfile
from news_digest.delivery.outbox import OutboxDispatcher
from news_digest.embeddings.errors import EmbeddingAuthError, ProviderError
from news_digest.embeddings.voyage import VoyageEmbedder
from news_digest.observability.logging import bind_run_context, configure_logging
from news_digest.pipeline.backfill import backfill_index
from news_digest.pipeline.breaking import BreakingAlertRunner
from news_digest.pipeline.curate import CurationCycle
from news_digest.pipeline.digest import DigestRunner
from news_digest.selection.selector import SelectionEngine
from news_digest.settings import AppSettings, get_settings
from news_digest.sources.feed import FeedSource
from news_digest.store.models import ClusterStatus, Edition
from news_digest.store.store import StateStore
from news_digest.timeutil import current_edition, is_due
from news_digest.urgency.detector import UrgencyDetector
from news_digest.vector.index import SqliteVectorIndex


logger = structlog.get_logger()

# Rows shown by the human-readable pending listing
PENDING_DISPLAY_LIMIT = 20

# Articles listed per cluster in the human-readable clusters listing
CLUSTER_ARTICLE_PREVIEW = 3

_DURATION_RE = re.compile(r"^(\d+)h?$")


@dataclass
class CliContext:
    """Options shared by every command."""

    app: AppSettings
    json_logs: bool
    verbose: bool

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory."""
        return self.app.config_dir

    @property
    def db_path(self) -> Path:
        """Get the state database path."""
        return self.app.db_path


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def _setup(ctx: CliContext, command: str) -> tuple[str, ConfigLoader, Settings]:
    """Configure logging and load settings.yaml, exiting on invalid config."""
    level = logging.DEBUG if ctx.verbose else logging.INFO
    configure_logging(level=level, json_format=ctx.json_logs)

    run_id = _new_run_id()
    bind_run_context(run_id)
    logger.info("command_started", command=command, config_dir=str(ctx.config_dir))

    loader = ConfigLoader(ctx.config_dir, run_id=run_id)
    try:
        settings = loader.load_settings()
    except ConfigurationError as e:
        _fail_config(e)
    return run_id, loader, settings


def _fail_config(error: ConfigurationError) -> NoReturn:
    click.echo(f"Configuration error: {error}", err=True)
    for detail in error.errors:
        click.echo(f"  - {detail['loc']}: {detail['msg']}", err=True)
    sys.exit(1)


def _load_users(
    loader: ConfigLoader, names: list[str] | None
) -> dict[str, UserProfile]:
    try:
        return loader.load_users(names)
    except ConfigurationError as e:
        _fail_config(e)


def _open_store(ctx: CliContext, run_id: str) -> StateStore:
    return StateStore(ctx.db_path, run_id=run_id)


def _build_engine(store: StateStore, settings: Settings, run_id: str) -> ClusterEngine:
    index = SqliteVectorIndex(store.connection, lock=store.lock)
    return ClusterEngine(store, index, settings.clustering, run_id)


def _build_embedder(ctx: CliContext, settings: Settings) -> VoyageEmbedder:
    embeddings = settings.embeddings
    try:
        return VoyageEmbedder(
            api_key=ctx.app.voyage_api_key or "",
            model=embeddings.model,
            base_url=embeddings.base_url,
            batch_size=embeddings.batch_size,
            timeout=embeddings.timeout_seconds,
            max_retries=embeddings.max_retries,
        )
    except EmbeddingAuthError as e:
        click.echo(f"Error: {e} (set VOYAGE_API_KEY)", err=True)
        sys.exit(1)


def _parse_hours(value: str) -> int:
    match = _DURATION_RE.match(value.strip().lower())
    if not match:
        raise click.BadParameter(f"expected hours like '12h', got '{value}'")
    return int(match.group(1))


def _parse_edition(value: str) -> Edition | None:
    return None if value == "auto" else Edition(value.upper())


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Configuration directory (default: $NEWS_DIGEST_CONFIG_DIR or ./config).",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite state database (default: $NEWS_DIGEST_DB_PATH).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=False,
    help="Use JSON format for logs (default: false).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_dir: Path | None,
    db_path: Path | None,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Personal news digest with story clustering and breaking alerts."""
    app = get_settings()
    overrides: dict[str, Path] = {}
    if config_dir is not None:
        overrides["config_dir"] = config_dir
    if db_path is not None:
        overrides["db_path"] = db_path
    if overrides:
        app = app.model_copy(update=overrides)
    ctx.obj = CliContext(app=app, json_logs=json_logs, verbose=verbose)


@cli.command()
@click.pass_obj
def curate(ctx: CliContext) -> None:
    """Run a curation cycle (fetch, embed, cluster, maintain)."""
    run_id, _, settings = _setup(ctx, "curate")
    embedder = _build_embedder(ctx, settings)
    source = FeedSource(
        settings.feeds,
        timeout=settings.pipeline.fetch_timeout_seconds,
        max_workers=settings.pipeline.max_workers,
        run_id=run_id,
    )

    with _open_store(ctx, run_id) as store:
        cycle = CurationCycle(
            store=store,
            source=source,
            embedder=embedder,
            engine=_build_engine(store, settings, run_id),
            settings=settings,
            run_id=run_id,
        )
        result = cycle.run()

    summary = result.to_dict()
    click.echo(
        f"Cycle {run_id}: {summary['articles_new']} new of {summary['articles_in']}, "
        f"{summary['articles_clustered']} clustered, "
        f"{summary['clusters_merged']} merged, {summary['clusters_staled']} staled"
    )
    if not result.success:
        click.echo(f"Cycle failed: {result.error}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--user", "user", default=None, help="Check one user only.")
@click.option(
    "--force",
    is_flag=True,
    help="Send during quiet hours (the daily cap still applies).",
)
@click.pass_obj
def breaking(ctx: CliContext, user: str | None, force: bool) -> None:
    """Check for breaking news and alert eligible users."""
    run_id, loader, settings = _setup(ctx, "breaking")
    users = _load_users(loader, [user] if user else None)

    with _open_store(ctx, run_id) as store:
        detector = UrgencyDetector(
            store,
            settings.breaking,
            settings.clustering.min_sources_for_trending,
            run_id,
        )
        sender = OutboxDispatcher(
            settings.pipeline.outbox_dir, settings.digest, run_id=run_id
        )
        runner = BreakingAlertRunner(store, detector, sender, settings.breaking, run_id)
        result = runner.run(users, force=force)

    click.echo(
        f"Breaking check: {result.candidates} candidates, "
        f"{result.alerts_sent} alerts sent"
    )
    for failed in result.errors:
        click.echo(
            f"  {failed.decision.user} / {failed.decision.cluster_id}: {failed.error}",
            err=True,
        )
    if result.errors:
        sys.exit(1)


@cli.command()
@click.option("--user", "user", default=None, help="Send to one user.")
@click.option("--all-due", is_flag=True, help="Send to every user due this hour.")
@click.option(
    "--edition",
    type=click.Choice(["auto", "morning", "evening"]),
    default="auto",
    show_default=True,
    help="Force an edition.",
)
@click.option("--dry-run", is_flag=True, help="Select without sending or marking.")
@click.pass_obj
def send(
    ctx: CliContext, user: str | None, all_due: bool, edition: str, dry_run: bool
) -> None:
    """Build and deliver digests."""
    if not user and not all_due:
        raise click.UsageError("pass --user or --all-due")

    run_id, loader, settings = _setup(ctx, "send")
    users = _load_users(loader, [user] if user else None)
    now = datetime.now(UTC)
    if all_due and not user:
        users = {n: p for n, p in users.items() if is_due(p.schedule, now)}

    if not users:
        click.echo("No users due.")
        return

    with _open_store(ctx, run_id) as store:
        dispatcher = OutboxDispatcher(
            settings.pipeline.outbox_dir, settings.digest, run_id=run_id
        )
        runner = DigestRunner(
            store,
            SelectionEngine(store, run_id=run_id),
            dispatcher,
            max_workers=settings.pipeline.max_workers,
            run_id=run_id,
        )
        result = runner.run(
            users, edition=_parse_edition(edition), now=now, dry_run=dry_run
        )

    for name in sorted(result.users):
        outcome = result.users[name]
        edition_name = outcome.edition.value if outcome.edition else "-"
        if outcome.error:
            click.echo(f"  {name} [{edition_name}]: FAILED {outcome.error}", err=True)
        elif outcome.skipped_reason:
            click.echo(f"  {name} [{edition_name}]: skipped ({outcome.skipped_reason})")
        elif outcome.dry_run:
            stories = len(outcome.cluster_ids)
            click.echo(f"  {name} [{edition_name}]: {stories} stories (dry run)")
        else:
            click.echo(f"  {name} [{edition_name}]: sent {outcome.message_id}")
    if result.failed:
        sys.exit(1)


@cli.command()
@click.option("--user", "user", required=True, help="User to preview for.")
@click.option(
    "--edition",
    type=click.Choice(["auto", "morning", "evening"]),
    default="auto",
    show_default=True,
)
@click.pass_obj
def preview(ctx: CliContext, user: str, edition: str) -> None:
    """Print the next digest selection for a user as JSON."""
    run_id, loader, _ = _setup(ctx, "preview")
    profile = _load_users(loader, [user])[user]
    resolved = _parse_edition(edition) or current_edition(
        profile.schedule, datetime.now(UTC)
    )

    with _open_store(ctx, run_id) as store:
        selection = SelectionEngine(store, run_id=run_id).select(
            user, profile.newsletter, profile.topics
        )

    output = {"user": user, "edition": resolved.value, **selection.to_dict()}
    click.echo(json.dumps(output, indent=2, ensure_ascii=False))


@cli.command()
@click.option(
    "--since",
    default=None,
    help="Window, e.g. 24h (default: clustering.cluster_window_hours).",
)
@click.option(
    "--status",
    type=click.Choice(["active", "stale"], case_sensitive=False),
    default=None,
    help="Filter by status.",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_obj
def clusters(
    ctx: CliContext, since: str | None, status: str | None, json_output: bool
) -> None:
    """Show story clusters updated within a window."""
    run_id, _, settings = _setup(ctx, "clusters")
    hours = (
        _parse_hours(since) if since else settings.clustering.cluster_window_hours
    )
    cutoff = datetime.now(UTC) - timedelta(hours=hours)
    status_filter = ClusterStatus(status.upper()) if status else None

    with _open_store(ctx, run_id) as store:
        found = store.get_clusters(since=cutoff, status=status_filter)
    found.sort(key=lambda c: c.source_count, reverse=True)

    if json_output:
        click.echo(
            json.dumps([c.model_dump(mode="json") for c in found], indent=2)
        )
        return

    click.echo(f"Clusters (last {hours}h):")
    for cluster in found:
        click.echo(f"[{cluster.status.value}] {cluster.label}")
        click.echo(
            f"  Sources: {cluster.source_count} | Articles: {cluster.article_count}"
            f" | Velocity: {cluster.peak_velocity:.2f}/h"
        )
        for article in cluster.articles[:CLUSTER_ARTICLE_PREVIEW]:
            click.echo(f"    - {article.source}: {article.title[:60]}")
        hidden = len(cluster.articles) - CLUSTER_ARTICLE_PREVIEW
        if hidden > 0:
            click.echo(f"    ... and {hidden} more")
    click.echo(f"Total: {len(found)} clusters")


@cli.command()
@click.option("--user", "user", required=True, help="User to check.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_obj
def pending(ctx: CliContext, user: str, json_output: bool) -> None:
    """Show ranked clusters not yet sent to a user."""
    run_id, loader, _ = _setup(ctx, "pending")
    profile = _load_users(loader, [user])[user]

    with _open_store(ctx, run_id) as store:
        ranked = SelectionEngine(store, run_id=run_id).rank(user, profile.topics)

    if json_output:
        click.echo(
            json.dumps(
                [
                    {
                        "cluster_id": s.cluster.id,
                        "label": s.cluster.label,
                        "score": s.score,
                        "components": s.components.to_dict(),
                    }
                    for s in ranked
                ],
                indent=2,
            )
        )
        return

    click.echo(f"Pending items for {user}:")
    for scored in ranked[:PENDING_DISPLAY_LIMIT]:
        image = " [img]" if scored.cluster.has_image else ""
        click.echo(f"[Score: {scored.score:.1f}] {scored.cluster.label}{image}")
        click.echo(
            f"  Sources: {scored.cluster.source_count}"
            f" | Articles: {scored.cluster.article_count}"
        )
    click.echo(f"Total pending: {len(ranked)}")


@cli.command()
@click.option("--user", "user", required=True, help="User to manage.")
@click.option("--show", is_flag=True, help="Show current preferences.")
@click.option("--exclude-topic", "exclude", multiple=True, help="Topic to exclude.")
@click.option("--boost-topic", "boost", multiple=True, help="Topic to boost.")
@click.option("--set-lens", "lens", default=None, help="Set editorial lens.")
@click.option("--set-tone", "tone", default=None, help="Set editorial tone.")
@click.pass_obj
def prefs(  # noqa: PLR0913
    ctx: CliContext,
    user: str,
    show: bool,
    exclude: tuple[str, ...],
    boost: tuple[str, ...],
    lens: str | None,
    tone: str | None,
) -> None:
    """Show or update a user's preferences."""
    _, loader, _ = _setup(ctx, "prefs")
    profile = _load_users(loader, [user])[user]

    if exclude or boost or lens is not None or tone is not None:
        topics = profile.topics.model_copy(
            update={
                "exclude": list(dict.fromkeys([*profile.topics.exclude, *exclude])),
                "boost": list(dict.fromkeys([*profile.topics.boost, *boost])),
            }
        )
        editorial = profile.editorial.model_copy(
            update={
                "lens": lens if lens is not None else profile.editorial.lens,
                "tone": tone if tone is not None else profile.editorial.tone,
            }
        )
        try:
            profile = UserProfile.model_validate(
                {
                    **profile.model_dump(),
                    "topics": topics.model_dump(),
                    "editorial": editorial.model_dump(),
                }
            )
        except ValueError as e:
            raise click.BadParameter(str(e)) from e
        loader.save_user(user, profile)
        click.echo(f"Updated preferences for {user}.")
    elif not show:
        show = True

    if show:
        click.echo(json.dumps(profile.model_dump(mode="json"), indent=2))


@cli.command()
@click.pass_obj
def validate(ctx: CliContext) -> None:
    """Validate settings.yaml and every user profile."""
    _, loader, settings = _setup(ctx, "validate")
    users = _load_users(loader, None)
    click.echo("Configuration is valid!")
    click.echo(f"  Feeds: {len(settings.feeds)}")
    click.echo(f"  Users: {len(users)}")
    for path, checksum in sorted(loader.file_checksums.items()):
        click.echo(f"  {path}: {checksum[:12]}")


@cli.command()
@click.option("--limit", default=500, show_default=True, help="Articles to examine.")
@click.pass_obj
def backfill(ctx: CliContext, limit: int) -> None:
    """Index embeddings for clustered articles missing from the vector index."""
    run_id, _, settings = _setup(ctx, "backfill")
    embedder = _build_embedder(ctx, settings)

    with _open_store(ctx, run_id) as store:
        engine = _build_engine(store, settings, run_id)
        index = SqliteVectorIndex(store.connection, lock=store.lock)
        try:
            result = backfill_index(store, index, embedder, engine, limit, run_id)
        except ProviderError as e:
            click.echo(f"Backfill failed: {e}", err=True)
            sys.exit(1)

    click.echo(
        f"Backfill: examined {result.examined}, indexed {result.indexed}, "
        f"already indexed {result.already_indexed}, unclustered {result.unclustered}"
    )


@cli.command("db-stats")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_obj
def db_stats(ctx: CliContext, json_output: bool) -> None:
    """Display state database statistics."""
    run_id, _, _ = _setup(ctx, "db-stats")
    with _open_store(ctx, run_id) as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()

    if json_output:
        click.echo(
            json.dumps({"schema_version": schema_version, "tables": stats}, indent=2)
        )
        return

    click.echo("State Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    for table, count in sorted(stats.items()):
        click.echo(f"  {table}: {count}")


def main() -> None:
    """Entry point for the ``news-digest`` script."""
    cli()


if __name__ == "__main__":
    main()
