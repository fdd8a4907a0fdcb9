"""Curation, breaking-news and digest flows."""

from news_digest.pipeline.backfill import BackfillResult, backfill_index
from news_digest.pipeline.breaking import BreakingAlertRunner
from news_digest.pipeline.curate import CurationCycle, build_article
from news_digest.pipeline.digest import DigestRunner
from news_digest.pipeline.models import (
    BreakingResult,
    CycleResult,
    DigestRunResult,
    IngestStats,
    UserAlertResult,
    UserDigestResult,
)
from news_digest.pipeline.state_machine import (
    CycleState,
    CycleStateError,
    CycleStateMachine,
)


__all__ = [
    "BackfillResult",
    "BreakingAlertRunner",
    "BreakingResult",
    "CurationCycle",
    "CycleResult",
    "CycleState",
    "CycleStateError",
    "CycleStateMachine",
    "DigestRunResult",
    "DigestRunner",
    "IngestStats",
    "UserAlertResult",
    "UserDigestResult",
    "backfill_index",
    "build_article",
]
