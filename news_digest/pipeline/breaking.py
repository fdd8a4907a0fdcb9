"""Breaking-news check: find urgent clusters and alert eligible users."""

from datetime import UTC, datetime

import structlog

from news_digest.config.schemas import BreakingSettings, UserProfile
from news_digest.delivery.errors import DeliveryError
from news_digest.delivery.protocols import AlertSender
from news_digest.pipeline.models import BreakingResult, UserAlertResult
from news_digest.store.errors import StateStoreError
from news_digest.store.models import BreakingAlertRecord
from news_digest.store.protocols import Store
from news_digest.urgency.detector import UrgencyDetector
from news_digest.urgency.models import AlertDecision, BreakingCandidate


logger = structlog.get_logger()


class BreakingAlertRunner:
    """Evaluates every candidate against every user and sends alerts.

    An alert record is appended only after the sender succeeded, so the
    daily cap and the already-alerted check count delivered alerts only.
    """

    def __init__(
        self,
        store: Store,
        detector: UrgencyDetector,
        sender: AlertSender,
        settings: BreakingSettings,
        run_id: str,
    ) -> None:
        """Initialize the runner.

        Args:
            store: Durable state (alert log).
            detector: Candidate finder and gate.
            sender: Alert delivery.
            settings: Breaking alert settings.
            run_id: Run identifier for logging.
        """
        self._store = store
        self._detector = detector
        self._sender = sender
        self._settings = settings
        self._log = logger.bind(component="breaking", run_id=run_id)

    def run(
        self,
        users: dict[str, UserProfile],
        now: datetime | None = None,
        force: bool = False,
    ) -> BreakingResult:
        """Run one breaking-news check.

        Args:
            users: Profiles keyed by user name.
            now: Time snapshot.
            force: Bypass quiet hours (never the daily cap).

        Returns:
            Per-user, per-candidate outcomes.
        """
        now = now or datetime.now(UTC)
        result = BreakingResult()

        if not self._settings.enabled:
            self._log.info("breaking_disabled_globally")
            return result

        candidates = self._detector.candidates(now)
        result.candidates = len(candidates)

        for candidate in candidates:
            for user, profile in users.items():
                try:
                    outcome = self._alert_user(candidate, user, profile, now, force)
                except Exception as e:  # noqa: BLE001
                    self._log.error(
                        "breaking_user_error",
                        user=user,
                        cluster_id=candidate.cluster.id,
                        error=str(e),
                    )
                    outcome = UserAlertResult(
                        decision=AlertDecision(
                            user=user,
                            cluster_id=candidate.cluster.id,
                            urgency=candidate.urgency,
                            send=False,
                        ),
                        error=f"Execution error: {e}",
                    )
                result.results.append(outcome)

        self._log.info(
            "breaking_check_complete",
            candidates=result.candidates,
            users=len(users),
            alerts_sent=result.alerts_sent,
            errors=len(result.errors),
        )
        return result

    def _alert_user(
        self,
        candidate: BreakingCandidate,
        user: str,
        profile: UserProfile,
        now: datetime,
        force: bool,
    ) -> UserAlertResult:
        decision = self._detector.evaluate(candidate, user, profile, now, force=force)
        if not decision.send:
            return UserAlertResult(decision=decision)

        cluster = candidate.cluster
        try:
            receipt = self._sender.send_alert(user, profile, candidate)
            self._store.append_alert_record(
                BreakingAlertRecord(
                    user=user,
                    cluster_id=cluster.id,
                    headline=cluster.label,
                    urgency=candidate.urgency,
                    article_ids=cluster.article_ids,
                    sent_at=now,
                )
            )
        except (DeliveryError, StateStoreError) as e:
            self._log.error(
                "breaking_alert_failed", user=user, cluster_id=cluster.id, error=str(e)
            )
            return UserAlertResult(decision=decision, error=str(e))

        self._log.info(
            "breaking_alert_sent",
            user=user,
            cluster_id=cluster.id,
            urgency=round(candidate.urgency, 3),
            message_id=receipt.message_id,
            quiet_hours_overridden=decision.quiet_hours_overridden,
        )
        return UserAlertResult(decision=decision, message_id=receipt.message_id)
