"""SQLite schema migrations for the state store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from news_digest.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
    """

    version: int
    description: str
    up_sql: str


# All migrations in order
MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Articles, clusters, curations, alerts, send log and runs",
        up_sql="""
-- Clusters own membership; articles keep a back-reference
CREATE TABLE IF NOT EXISTS clusters (
    id TEXT PRIMARY KEY,
    label TEXT NOT NULL,
    keywords_json TEXT NOT NULL,
    status TEXT NOT NULL,
    source_count INTEGER NOT NULL,
    article_count INTEGER NOT NULL,
    peak_velocity REAL NOT NULL,
    created_at TEXT NOT NULL,
    last_updated TEXT NOT NULL,
    merged_into TEXT
);
CREATE INDEX IF NOT EXISTS idx_clusters_status ON clusters(status);
CREATE INDEX IF NOT EXISTS idx_clusters_created_at ON clusters(created_at);

CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    url TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    summary TEXT,
    content TEXT,
    author TEXT,
    source TEXT NOT NULL,
    source_url TEXT,
    published_at TEXT NOT NULL,
    image_url TEXT,
    base_score INTEGER NOT NULL,
    entities_json TEXT,
    cluster_id TEXT REFERENCES clusters(id),
    ingested_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_articles_cluster_id ON articles(cluster_id);
CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles(published_at);

-- Per-user delivery state; a missing row means PENDING
CREATE TABLE IF NOT EXISTS user_curations (
    user TEXT NOT NULL,
    cluster_id TEXT NOT NULL REFERENCES clusters(id),
    status TEXT NOT NULL,
    sent_at TEXT,
    edition TEXT,
    PRIMARY KEY (user, cluster_id)
);

-- Append-only alert log
CREATE TABLE IF NOT EXISTS breaking_alerts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user TEXT NOT NULL,
    cluster_id TEXT NOT NULL,
    headline TEXT NOT NULL,
    urgency REAL NOT NULL,
    article_ids_json TEXT NOT NULL,
    sent_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_breaking_alerts_user_sent
    ON breaking_alerts(user, sent_at);

CREATE TABLE IF NOT EXISTS send_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user TEXT NOT NULL,
    edition TEXT NOT NULL,
    success INTEGER NOT NULL,
    message_id TEXT,
    feature_cluster_id TEXT,
    key_cluster_ids_json TEXT NOT NULL,
    quick_cluster_ids_json TEXT NOT NULL,
    sent_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_send_log_user ON send_log(user, sent_at);

-- Curation cycle lifecycle
CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    success INTEGER,
    error_summary TEXT,
    articles_in INTEGER NOT NULL DEFAULT 0,
    articles_new INTEGER NOT NULL DEFAULT 0,
    articles_clustered INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_runs_started_at ON runs(started_at);
""",
    ),
    Migration(
        version=2,
        description="Embedding vectors for the SQLite vector index",
        up_sql="""
CREATE TABLE IF NOT EXISTS article_vectors (
    id TEXT PRIMARY KEY,
    dim INTEGER NOT NULL,
    vector BLOB NOT NULL,
    metadata_json TEXT NOT NULL,
    created_at TEXT NOT NULL
);
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        cursor = self._conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration script fails.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.info("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []

        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )

            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
                applied.append(migration.version)

                self._log.info("migration_applied", version=migration.version)

            except sqlite3.Error as e:
                self._log.error(
                    "migration_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

        return applied
