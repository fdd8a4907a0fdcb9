"""SQLite state store implementation."""

import json
import sqlite3
import threading
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import structlog

from news_digest.store.errors import (
    ConnectionError as StoreConnectionError,
    DatabaseError,
    RunNotFoundError,
)
from news_digest.store.metrics import StoreMetrics, TransactionContext
from news_digest.store.migrations import CURRENT_VERSION, MigrationManager
from news_digest.store.models import (
    Article,
    ArticleEntities,
    BreakingAlertRecord,
    ClusterStatus,
    CurationStatus,
    CycleRun,
    Edition,
    SendLogRecord,
    StoryCluster,
    UserCuration,
)


logger = structlog.get_logger()

# Max bound parameters per IN (...) clause
_IN_CHUNK = 500


def _ts(value: datetime) -> str:
    """Serialize a timestamp as a fixed-width UTC ISO string.

    Fixed width keeps lexicographic order equal to chronological order, which
    the range queries below rely on.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class StateStore:
    """SQLite store for articles, story clusters and delivery state.

    Provides transactional APIs for managing persistent state across cycles.
    Uses WAL mode for reliability and supports schema migrations. The
    connection is shared across threads; a store-level lock serializes access.
    """

    def __init__(
        self,
        db_path: Path | str,
        run_id: str | None = None,
    ) -> None:
        """Initialize the state store.

        Args:
            db_path: Path to SQLite database file, or ``":memory:"``.
            run_id: Optional run ID for logging context.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._run_id = run_id or str(uuid.uuid4())
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            run_id=self._run_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def run_id(self) -> str:
        """Get the current run ID."""
        return self._run_id

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the open connection (shared with the SQLite vector index)."""
        return self._ensure_connected()

    @property
    def lock(self) -> threading.RLock:
        """Get the lock guarding the shared connection."""
        return self._lock

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        Enables WAL mode for reliability.
        """
        if self._conn is not None:
            return

        in_memory = str(self._db_path) == ":memory:"
        if not in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.info("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        if not in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "StateStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        with self._lock:
            conn = self._ensure_connected()
            tx_id = str(uuid.uuid4())[:8]
            start_ns = time.perf_counter_ns()
            ctx = TransactionContext(
                tx_id=tx_id, start_time_ns=start_ns, operation=operation
            )

            self._log.debug("transaction_started", tx_id=tx_id, op=operation)

            try:
                yield ctx
                conn.commit()
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                self._metrics.record_tx_duration(duration_ms)

                self._log.debug(
                    "transaction_complete",
                    tx_id=tx_id,
                    op=operation,
                    affected_rows=ctx.affected_rows,
                    duration_ms=round(duration_ms, 2),
                )

            except Exception as e:
                conn.rollback()
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                self._metrics.record_tx_failed()

                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(duration_ms, 2),
                    error=str(e),
                )
                if isinstance(e, sqlite3.Error):
                    raise DatabaseError(operation, str(e)) from e
                raise

    @contextmanager
    def _reading(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Hold the connection lock for a read and wrap SQLite errors."""
        with self._lock:
            conn = self._ensure_connected()
            try:
                yield conn
            except sqlite3.Error as e:
                self._log.error("read_failed", op=operation, error=str(e))
                raise DatabaseError(operation, str(e)) from e

    def _query(self, sql: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        with self._reading("query") as conn:
            return conn.execute(sql, params).fetchall()

    # ===== Articles =====

    def insert_article(self, article: Article) -> bool:
        """Insert a new article.

        Args:
            article: Article with canonical URL, base score and entities set.

        Returns:
            True if inserted, False if an article with the URL already exists.
        """
        with self._transaction("insert_article") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                INSERT INTO articles (
                    id, url, title, summary, content, author, source,
                    source_url, published_at, image_url, base_score,
                    entities_json, cluster_id, ingested_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT DO NOTHING
                """,
                (
                    article.id,
                    article.url,
                    article.title,
                    article.summary,
                    article.content,
                    article.author,
                    article.source,
                    article.source_url,
                    _ts(article.published_at),
                    article.image_url,
                    article.base_score,
                    (
                        article.entities.model_dump_json()
                        if article.entities is not None
                        else None
                    ),
                    article.cluster_id,
                    _ts(datetime.now(UTC)),
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)
            inserted = cursor.rowcount > 0

        if inserted:
            self._metrics.record_article_inserted()
        else:
            self._metrics.record_article_duplicate()
            self._log.debug("article_duplicate", url=article.url)
        return inserted

    def article_exists(self, url: str) -> bool:
        """Check whether an article with this canonical URL is stored.

        Args:
            url: Canonical article URL.

        Returns:
            True if stored.
        """
        rows = self._query("SELECT 1 FROM articles WHERE url = ? LIMIT 1", (url,))
        return bool(rows)

    def get_article(self, article_id: str) -> Article | None:
        """Get an article by ID.

        Args:
            article_id: The article ID.

        Returns:
            The article, or None if not found.
        """
        rows = self._query("SELECT * FROM articles WHERE id = ?", (article_id,))
        return self._row_to_article(rows[0]) if rows else None

    def get_unclustered_articles(self) -> list[Article]:
        """Get articles that have not been clustered yet.

        Includes articles left behind by a failed cycle.

        Returns:
            Articles ordered by publication time, then ID.
        """
        rows = self._query(
            """
            SELECT * FROM articles
            WHERE cluster_id IS NULL
            ORDER BY published_at, id
            """
        )
        return [self._row_to_article(row) for row in rows]

    def get_pending_articles(self) -> list[Article]:
        """Get articles the next cycle must embed.

        These are unclustered articles plus clustered ones whose vector never
        reached the index because the upsert failed after the cluster commit.

        Returns:
            Articles ordered by publication time, then ID.
        """
        rows = self._query(
            """
            SELECT * FROM articles
            WHERE cluster_id IS NULL
               OR id NOT IN (SELECT id FROM article_vectors)
            ORDER BY published_at, id
            """
        )
        return [self._row_to_article(row) for row in rows]

    def get_recent_articles(self, limit: int) -> list[Article]:
        """Get the most recently published articles.

        Args:
            limit: Maximum number of articles.

        Returns:
            Articles, newest first.
        """
        rows = self._query(
            "SELECT * FROM articles ORDER BY published_at DESC, id LIMIT ?", (limit,)
        )
        return [self._row_to_article(row) for row in rows]

    def _row_to_article(self, row: sqlite3.Row) -> Article:
        """Convert a database row to an Article."""
        entities_json = row["entities_json"]
        return Article(
            id=row["id"],
            url=row["url"],
            title=row["title"],
            summary=row["summary"],
            content=row["content"],
            author=row["author"],
            source=row["source"],
            source_url=row["source_url"],
            published_at=datetime.fromisoformat(row["published_at"]),
            image_url=row["image_url"],
            base_score=row["base_score"],
            entities=(
                ArticleEntities.model_validate_json(entities_json)
                if entities_json
                else None
            ),
            cluster_id=row["cluster_id"],
        )

    # ===== Clusters =====

    def get_active_clusters(self, min_sources: int | None = None) -> list[StoryCluster]:
        """Get ACTIVE clusters with their members.

        Args:
            min_sources: Optional minimum source count.

        Returns:
            Clusters in creation order.
        """
        sql = "SELECT * FROM clusters WHERE status = ?"
        params: list[object] = [ClusterStatus.ACTIVE.value]
        if min_sources is not None:
            sql += " AND source_count >= ?"
            params.append(min_sources)
        sql += " ORDER BY created_at, id"
        return self._load_clusters(sql, tuple(params))

    def get_clusters(
        self,
        since: datetime | None = None,
        status: ClusterStatus | None = None,
    ) -> list[StoryCluster]:
        """Get clusters, optionally filtered.

        Args:
            since: Only clusters with ``last_updated >= since``.
            status: Only clusters with this status.

        Returns:
            Clusters in creation order.
        """
        clauses: list[str] = []
        params: list[object] = []
        if since is not None:
            clauses.append("last_updated >= ?")
            params.append(_ts(since))
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)

        sql = "SELECT * FROM clusters"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at, id"
        return self._load_clusters(sql, tuple(params))

    def get_cluster_by_id(self, cluster_id: str) -> StoryCluster | None:
        """Get one cluster with its members.

        Args:
            cluster_id: The cluster ID.

        Returns:
            The cluster, or None if not found.
        """
        clusters = self._load_clusters(
            "SELECT * FROM clusters WHERE id = ?", (cluster_id,)
        )
        return clusters[0] if clusters else None

    def _load_clusters(
        self, sql: str, params: tuple[object, ...]
    ) -> list[StoryCluster]:
        """Run a cluster query and attach members in one consistent read."""
        with self._reading("load_clusters") as conn:
            cluster_rows = conn.execute(sql, params).fetchall()
            members: dict[str, list[Article]] = {
                row["id"]: [] for row in cluster_rows
            }

            ids = list(members)
            for start in range(0, len(ids), _IN_CHUNK):
                chunk = ids[start : start + _IN_CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                article_rows = conn.execute(
                    f"""
                    SELECT * FROM articles
                    WHERE cluster_id IN ({placeholders})
                    ORDER BY rowid
                    """,  # noqa: S608
                    tuple(chunk),
                ).fetchall()
                for row in article_rows:
                    members[row["cluster_id"]].append(self._row_to_article(row))

        return [
            self._row_to_cluster(row, members[row["id"]]) for row in cluster_rows
        ]

    def _row_to_cluster(
        self, row: sqlite3.Row, articles: list[Article]
    ) -> StoryCluster:
        """Convert a database row and its members to a StoryCluster."""
        return StoryCluster(
            id=row["id"],
            label=row["label"],
            keywords=json.loads(row["keywords_json"]),
            status=ClusterStatus(row["status"]),
            source_count=row["source_count"],
            article_count=row["article_count"],
            peak_velocity=row["peak_velocity"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_updated=datetime.fromisoformat(row["last_updated"]),
            merged_into=row["merged_into"],
            articles=articles,
        )

    def save_cluster(self, cluster: StoryCluster) -> None:
        """Persist a cluster aggregate and its membership atomically.

        Args:
            cluster: The cluster to write.
        """
        self.save_clusters([cluster])

    def save_clusters(self, clusters: Iterable[StoryCluster]) -> None:
        """Persist cluster aggregates and memberships in one transaction.

        Cluster rows are upserted and every member article's back-reference
        is pointed at its cluster. A STALE row is never reactivated and
        ``peak_velocity`` never decreases, whatever the caller passes.

        Args:
            clusters: Clusters to write.
        """
        batch = list(clusters)
        if not batch:
            return

        with self._transaction("save_clusters") as ctx:
            conn = self._ensure_connected()
            for cluster in batch:
                cursor = conn.execute(
                    """
                    INSERT INTO clusters (
                        id, label, keywords_json, status, source_count,
                        article_count, peak_velocity, created_at,
                        last_updated, merged_into
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        label = excluded.label,
                        keywords_json = excluded.keywords_json,
                        status = CASE
                            WHEN clusters.status = 'STALE' THEN 'STALE'
                            ELSE excluded.status
                        END,
                        source_count = excluded.source_count,
                        article_count = excluded.article_count,
                        peak_velocity = MAX(
                            clusters.peak_velocity, excluded.peak_velocity
                        ),
                        last_updated = excluded.last_updated,
                        merged_into = COALESCE(
                            excluded.merged_into, clusters.merged_into
                        )
                    """,
                    (
                        cluster.id,
                        cluster.label,
                        json.dumps(cluster.keywords),
                        cluster.status.value,
                        cluster.source_count,
                        cluster.article_count,
                        cluster.peak_velocity,
                        _ts(cluster.created_at),
                        _ts(cluster.last_updated),
                        cluster.merged_into,
                    ),
                )
                ctx.add_affected_rows(cursor.rowcount)

                for article in cluster.articles:
                    cursor = conn.execute(
                        "UPDATE articles SET cluster_id = ? WHERE id = ?",
                        (cluster.id, article.id),
                    )
                    ctx.add_affected_rows(cursor.rowcount)

        self._metrics.record_clusters_saved(len(batch))

    # ===== Curations =====

    def get_user_curations(
        self, user: str, status: CurationStatus | None = None
    ) -> list[UserCuration]:
        """Get stored curation rows for a user.

        Clusters with no row are implicitly PENDING and are not returned.

        Args:
            user: User name.
            status: Optional status filter.

        Returns:
            Curation records ordered by cluster ID.
        """
        sql = "SELECT * FROM user_curations WHERE user = ?"
        params: list[object] = [user]
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        sql += " ORDER BY cluster_id"

        return [
            UserCuration(
                user=row["user"],
                cluster_id=row["cluster_id"],
                status=CurationStatus(row["status"]),
                sent_at=_parse_ts(row["sent_at"]),
                edition=Edition(row["edition"]) if row["edition"] else None,
            )
            for row in self._query(sql, tuple(params))
        ]

    def get_sent_cluster_ids(self, user: str) -> set[str]:
        """Get IDs of clusters already sent to a user.

        Args:
            user: User name.

        Returns:
            Set of cluster IDs with status SENT.
        """
        rows = self._query(
            "SELECT cluster_id FROM user_curations WHERE user = ? AND status = ?",
            (user, CurationStatus.SENT.value),
        )
        return {row["cluster_id"] for row in rows}

    def mark_sent(
        self,
        user: str,
        cluster_ids: Iterable[str],
        edition: Edition,
        sent_at: datetime,
    ) -> int:
        """Mark clusters as SENT to a user.

        A row already SENT is left untouched, so a cluster transitions to
        SENT exactly once.

        Args:
            user: User name.
            cluster_ids: Clusters included in the delivered digest.
            edition: Edition the clusters were sent in.
            sent_at: Delivery time.

        Returns:
            Number of rows that changed to SENT.
        """
        changed = 0
        with self._transaction("mark_sent") as ctx:
            conn = self._ensure_connected()
            for cluster_id in cluster_ids:
                cursor = conn.execute(
                    """
                    INSERT INTO user_curations (user, cluster_id, status, sent_at, edition)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(user, cluster_id) DO UPDATE SET
                        status = excluded.status,
                        sent_at = excluded.sent_at,
                        edition = excluded.edition
                    WHERE user_curations.status = 'PENDING'
                    """,
                    (
                        user,
                        cluster_id,
                        CurationStatus.SENT.value,
                        _ts(sent_at),
                        edition.value,
                    ),
                )
                changed += cursor.rowcount
            ctx.add_affected_rows(changed)

        self._metrics.record_curations_marked(changed)
        return changed

    # ===== Breaking alerts =====

    def append_alert_record(self, record: BreakingAlertRecord) -> None:
        """Append a breaking alert record.

        Args:
            record: The alert that was sent.
        """
        with self._transaction("append_alert") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO breaking_alerts (
                    user, cluster_id, headline, urgency, article_ids_json, sent_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.user,
                    record.cluster_id,
                    record.headline,
                    record.urgency,
                    json.dumps(record.article_ids),
                    _ts(record.sent_at),
                ),
            )
            ctx.add_affected_rows(1)

        self._metrics.record_alert_appended()

    def count_alerts_since(self, user: str, since: datetime) -> int:
        """Count a user's alerts sent at or after a time.

        Args:
            user: User name.
            since: Lower bound (inclusive).

        Returns:
            Number of alert records.
        """
        rows = self._query(
            "SELECT COUNT(*) AS n FROM breaking_alerts WHERE user = ? AND sent_at >= ?",
            (user, _ts(since)),
        )
        return int(rows[0]["n"])

    def has_alert(self, user: str, cluster_id: str) -> bool:
        """Check whether a user was already alerted about a cluster.

        Args:
            user: User name.
            cluster_id: Cluster ID.

        Returns:
            True if an alert record exists.
        """
        rows = self._query(
            "SELECT 1 FROM breaking_alerts WHERE user = ? AND cluster_id = ? LIMIT 1",
            (user, cluster_id),
        )
        return bool(rows)

    def get_alerts(self, user: str, limit: int = 20) -> list[BreakingAlertRecord]:
        """Get a user's most recent alerts, newest first."""
        rows = self._query(
            """
            SELECT * FROM breaking_alerts WHERE user = ?
            ORDER BY sent_at DESC, id DESC LIMIT ?
            """,
            (user, limit),
        )
        return [
            BreakingAlertRecord(
                user=row["user"],
                cluster_id=row["cluster_id"],
                headline=row["headline"],
                urgency=row["urgency"],
                article_ids=json.loads(row["article_ids_json"]),
                sent_at=datetime.fromisoformat(row["sent_at"]),
            )
            for row in rows
        ]

    # ===== Send log =====

    def append_send_log(self, record: SendLogRecord) -> None:
        """Append a digest send log record.

        Args:
            record: The delivery attempt.
        """
        with self._transaction("append_send_log") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO send_log (
                    user, edition, success, message_id, feature_cluster_id,
                    key_cluster_ids_json, quick_cluster_ids_json, sent_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.user,
                    record.edition.value,
                    1 if record.success else 0,
                    record.message_id,
                    record.feature_cluster_id,
                    json.dumps(record.key_cluster_ids),
                    json.dumps(record.quick_cluster_ids),
                    _ts(record.sent_at),
                ),
            )
            ctx.add_affected_rows(1)

    def get_send_log(self, user: str, limit: int = 20) -> list[SendLogRecord]:
        """Get a user's most recent send log records, newest first."""
        rows = self._query(
            """
            SELECT * FROM send_log WHERE user = ?
            ORDER BY sent_at DESC, id DESC LIMIT ?
            """,
            (user, limit),
        )
        return [
            SendLogRecord(
                user=row["user"],
                edition=Edition(row["edition"]),
                success=bool(row["success"]),
                message_id=row["message_id"],
                feature_cluster_id=row["feature_cluster_id"],
                key_cluster_ids=json.loads(row["key_cluster_ids_json"]),
                quick_cluster_ids=json.loads(row["quick_cluster_ids_json"]),
                sent_at=datetime.fromisoformat(row["sent_at"]),
            )
            for row in rows
        ]

    # ===== Run Lifecycle =====

    def begin_run(
        self, run_id: str | None = None, started_at: datetime | None = None
    ) -> CycleRun:
        """Begin a new curation cycle run.

        Args:
            run_id: Optional run ID (defaults to the store's run ID).
            started_at: Optional start time (defaults to now).

        Returns:
            The created CycleRun record.
        """
        run_id = run_id or self._run_id
        now = started_at or datetime.now(UTC)

        with self._transaction("begin_run") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO runs (run_id, started_at, finished_at, success, error_summary)
                VALUES (?, ?, NULL, NULL, NULL)
                """,
                (run_id, _ts(now)),
            )
            ctx.add_affected_rows(1)

        return CycleRun(run_id=run_id, started_at=now)

    def end_run(  # noqa: PLR0913
        self,
        run_id: str,
        success: bool,
        error_summary: str | None = None,
        articles_in: int = 0,
        articles_new: int = 0,
        articles_clustered: int = 0,
    ) -> CycleRun:
        """End a curation cycle run.

        Args:
            run_id: The run ID to end.
            success: Whether the cycle succeeded.
            error_summary: Optional error summary if failed.
            articles_in: Raw articles fetched.
            articles_new: Articles newly stored.
            articles_clustered: Articles assigned to a cluster.

        Returns:
            The updated CycleRun record.

        Raises:
            RunNotFoundError: If the run does not exist.
        """
        now = datetime.now(UTC)

        with self._transaction("end_run") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                UPDATE runs
                SET finished_at = ?, success = ?, error_summary = ?,
                    articles_in = ?, articles_new = ?, articles_clustered = ?
                WHERE run_id = ?
                """,
                (
                    _ts(now),
                    1 if success else 0,
                    error_summary,
                    articles_in,
                    articles_new,
                    articles_clustered,
                    run_id,
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

        run = self.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def get_run(self, run_id: str) -> CycleRun | None:
        """Get a run by ID.

        Args:
            run_id: The run ID to look up.

        Returns:
            The CycleRun record, or None if not found.
        """
        rows = self._query("SELECT * FROM runs WHERE run_id = ?", (run_id,))
        if not rows:
            return None

        row = rows[0]
        return CycleRun(
            run_id=row["run_id"],
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=_parse_ts(row["finished_at"]),
            success=bool(row["success"]) if row["success"] is not None else None,
            error_summary=row["error_summary"],
            articles_in=row["articles_in"],
            articles_new=row["articles_new"],
            articles_clustered=row["articles_clustered"],
        )

    # ===== Statistics =====

    def get_stats(self) -> dict[str, int]:
        """Get row counts for reporting.

        Returns:
            Dictionary of counts by record type.
        """
        with self._reading("get_stats") as conn:
            return {
                "articles": conn.execute("SELECT COUNT(*) FROM articles").fetchone()[0],
                "unclustered": conn.execute(
                    "SELECT COUNT(*) FROM articles WHERE cluster_id IS NULL"
                ).fetchone()[0],
                "active_clusters": conn.execute(
                    "SELECT COUNT(*) FROM clusters WHERE status = 'ACTIVE'"
                ).fetchone()[0],
                "stale_clusters": conn.execute(
                    "SELECT COUNT(*) FROM clusters WHERE status = 'STALE'"
                ).fetchone()[0],
                "alerts": conn.execute(
                    "SELECT COUNT(*) FROM breaking_alerts"
                ).fetchone()[0],
                "runs": conn.execute("SELECT COUNT(*) FROM runs").fetchone()[0],
            }

    def get_schema_version(self) -> int:
        """Get the current schema version."""
        with self._lock:
            return MigrationManager(self._ensure_connected()).get_current_version()
