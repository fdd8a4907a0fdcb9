"""Configuration schemas."""

from news_digest.config.schemas.settings import (
    BreakingSettings,
    ClusteringSettings,
    DigestSettings,
    EmbeddingsSettings,
    FeedConfig,
    PipelineSettings,
    QuietHours,
    Settings,
)
from news_digest.config.schemas.users import (
    Editorial,
    NewsletterLayout,
    Schedule,
    UserBreaking,
    UserPreferences,
    UserProfile,
)


__all__ = [
    "BreakingSettings",
    "ClusteringSettings",
    "DigestSettings",
    "Editorial",
    "EmbeddingsSettings",
    "FeedConfig",
    "NewsletterLayout",
    "PipelineSettings",
    "QuietHours",
    "Schedule",
    "Settings",
    "UserBreaking",
    "UserPreferences",
    "UserProfile",
]
