"""Digest run: select, deliver and mark content per user."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime

import structlog

from news_digest.config.schemas import UserProfile
from news_digest.delivery.errors import DeliveryError
from news_digest.delivery.protocols import DigestDispatcher
from news_digest.pipeline.models import DigestRunResult, UserDigestResult
from news_digest.selection.selector import SelectionEngine
from news_digest.store.errors import StateStoreError
from news_digest.store.models import Edition, SendLogRecord
from news_digest.store.protocols import Store
from news_digest.timeutil import current_edition


logger = structlog.get_logger()

SKIP_NO_CONTENT = "no_content"


class DigestRunner:
    """Builds and delivers digests with bounded per-user fan-out.

    Each user's task writes only that user's curation and send-log rows.
    Clusters are marked SENT only after delivery succeeded.
    """

    def __init__(
        self,
        store: Store,
        selector: SelectionEngine,
        dispatcher: DigestDispatcher,
        max_workers: int,
        run_id: str,
    ) -> None:
        """Initialize the runner.

        Args:
            store: Durable state.
            selector: Per-user content selection.
            dispatcher: Digest delivery.
            max_workers: Maximum users processed concurrently.
            run_id: Run identifier for logging.
        """
        self._store = store
        self._selector = selector
        self._dispatcher = dispatcher
        self._max_workers = max(1, max_workers)
        self._log = logger.bind(component="digest", run_id=run_id)

    def run(
        self,
        users: dict[str, UserProfile],
        edition: Edition | None = None,
        now: datetime | None = None,
        dry_run: bool = False,
    ) -> DigestRunResult:
        """Deliver digests to a set of users.

        Args:
            users: Profiles keyed by user name.
            edition: Force an edition; otherwise each user's nearest slot.
            now: Time snapshot.
            dry_run: Select only; no delivery and no state changes.

        Returns:
            Per-user outcomes.
        """
        now = now or datetime.now(UTC)
        result = DigestRunResult()
        self._log.info(
            "digest_run_started",
            users=len(users),
            max_workers=self._max_workers,
            dry_run=dry_run,
        )

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            future_to_user = {
                executor.submit(
                    self._run_user, user, profile, edition, now, dry_run
                ): user
                for user, profile in users.items()
            }
            for future in as_completed(future_to_user):
                user = future_to_user[future]
                try:
                    result.users[user] = future.result()
                except Exception as e:  # noqa: BLE001
                    self._log.error("digest_user_error", user=user, error=str(e))
                    result.users[user] = UserDigestResult(
                        user=user, error=f"Execution error: {e}"
                    )

        self._log.info(
            "digest_run_complete",
            users=len(users),
            sent=result.sent,
            failed=result.failed,
            dry_run=dry_run,
        )
        return result

    def _run_user(
        self,
        user: str,
        profile: UserProfile,
        edition: Edition | None,
        now: datetime,
        dry_run: bool,
    ) -> UserDigestResult:
        log = self._log.bind(user=user)
        resolved = edition or current_edition(profile.schedule, now)

        try:
            selection = self._selector.select(user, profile.newsletter, profile.topics)
        except StateStoreError as e:
            log.error("digest_selection_failed", error=str(e))
            return UserDigestResult(user=user, edition=resolved, error=str(e))

        if selection.is_empty:
            log.info("digest_skipped", reason=SKIP_NO_CONTENT)
            return UserDigestResult(
                user=user, edition=resolved, skipped_reason=SKIP_NO_CONTENT
            )

        cluster_ids = selection.cluster_ids
        if dry_run:
            log.info(
                "digest_dry_run", edition=resolved.value, clusters=len(cluster_ids)
            )
            return UserDigestResult(
                user=user, edition=resolved, cluster_ids=cluster_ids, dry_run=True
            )

        try:
            receipt = self._dispatcher.dispatch_digest(
                user, profile, resolved, selection
            )
            self._store.mark_sent(user, cluster_ids, resolved, now)
            self._store.append_send_log(
                SendLogRecord(
                    user=user,
                    edition=resolved,
                    success=True,
                    message_id=receipt.message_id,
                    feature_cluster_id=(
                        selection.feature.cluster.id if selection.feature else None
                    ),
                    key_cluster_ids=[s.cluster.id for s in selection.key_stories],
                    quick_cluster_ids=[s.cluster.id for s in selection.quickfire],
                    sent_at=now,
                )
            )
        except (DeliveryError, StateStoreError) as e:
            log.error("digest_delivery_failed", edition=resolved.value, error=str(e))
            return UserDigestResult(
                user=user, edition=resolved, cluster_ids=cluster_ids, error=str(e)
            )

        log.info(
            "digest_sent",
            edition=resolved.value,
            clusters=len(cluster_ids),
            message_id=receipt.message_id,
        )
        return UserDigestResult(
            user=user,
            edition=resolved,
            cluster_ids=cluster_ids,
            message_id=receipt.message_id,
        )
