"""Schema for users/<name>.yaml."""

from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator

from news_digest.config.schemas.settings import QuietHours
from news_digest.data_model import StrictBaseModel


class Schedule(StrictBaseModel):
    """Digest schedule in the user's local time.

    Attributes:
        morning: Local hour of the morning edition.
        evening: Local hour of the evening edition.
        timezone: IANA timezone name.
    """

    morning: Annotated[int, Field(ge=0, le=23)] = 7
    evening: Annotated[int, Field(ge=0, le=23)] = 18
    timezone: Annotated[str, Field(min_length=1)] = "UTC"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v

    @model_validator(mode="after")
    def validate_distinct_hours(self) -> "Schedule":
        """Ensure the two editions are at different hours."""
        if self.morning == self.evening:
            msg = "morning and evening hours must differ"
            raise ValueError(msg)
        return self


class UserPreferences(StrictBaseModel):
    """Topic preferences used for cluster scoring.

    Attributes:
        exclude: Topics whose presence buries a cluster.
        boost: Topics that lift a cluster.
        boost_australia: Lift clusters about Australia.
        boost_nsw: Lift clusters about New South Wales.
    """

    exclude: list[str] = Field(default_factory=list)
    boost: list[str] = Field(default_factory=list)
    boost_australia: bool = False
    boost_nsw: bool = False

    @field_validator("exclude", "boost")
    @classmethod
    def validate_topics(cls, v: list[str]) -> list[str]:
        """Reject blank topic strings."""
        for topic in v:
            if not topic.strip():
                msg = "Topics must be non-empty strings"
                raise ValueError(msg)
        return v


class UserBreaking(StrictBaseModel):
    """Per-user breaking alert preferences.

    Attributes:
        enabled: Whether the user receives breaking alerts.
        categories: Advisory category list (not used for gating).
        quiet_hours: Overrides the global quiet window when set.
    """

    enabled: bool = True
    categories: list[str] = Field(default_factory=list)
    quiet_hours: QuietHours | None = None


class Editorial(StrictBaseModel):
    """Editorial voice passed through to the renderer."""

    lens: str = ""
    tone: str = ""
    signoff: str = ""


class NewsletterLayout(StrictBaseModel):
    """Digest section sizes.

    Attributes:
        feature_count: Feature stories per digest (one is selected).
        key_stories_count: Key stories after the feature.
        quickfire_count: Quick-fire items after the key stories.
        include_source_counts: Renderer hint.
    """

    feature_count: Annotated[int, Field(ge=0, le=1)] = 1
    key_stories_count: Annotated[int, Field(ge=0, le=50)] = 4
    quickfire_count: Annotated[int, Field(ge=0, le=100)] = 8
    include_source_counts: bool = True


class UserProfile(StrictBaseModel):
    """Root configuration for one user file."""

    email: Annotated[str, Field(pattern=r"^[^@\s]+@[^@\s]+$")]
    schedule: Schedule = Field(default_factory=Schedule)
    topics: UserPreferences = Field(default_factory=UserPreferences)
    breaking: UserBreaking = Field(default_factory=UserBreaking)
    editorial: Editorial = Field(default_factory=Editorial)
    newsletter: NewsletterLayout = Field(default_factory=NewsletterLayout)
