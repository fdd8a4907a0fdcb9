"""Unit tests for timezone helpers."""

from datetime import UTC, datetime

import pytest

from news_digest.config.schemas import Schedule
from news_digest.store.models import Edition
from news_digest.timeutil import current_edition, is_due, local_midnight, local_now
from tests.helpers.time import FIXED_NOW


SYDNEY = Schedule(timezone="Australia/Sydney", morning=7, evening=18)


class TestLocalTime:
    """Tests for local time conversion."""

    def test_local_now(self) -> None:
        """01:00 UTC is midday in Sydney during daylight saving."""
        assert local_now("Australia/Sydney", FIXED_NOW).hour == 12

    def test_local_midnight(self) -> None:
        """Sydney midnight on 2 March is 13:00 UTC on 1 March."""
        assert local_midnight("Australia/Sydney", FIXED_NOW) == datetime(
            2026, 3, 1, 13, 0, tzinfo=UTC
        )

    def test_utc_midnight(self) -> None:
        """UTC users reset at 00:00 UTC."""
        assert local_midnight("UTC", FIXED_NOW) == datetime(2026, 3, 2, tzinfo=UTC)


class TestEditions:
    """Tests for edition selection and due checks."""

    @pytest.mark.parametrize(
        ("utc_hour", "expected"),
        [
            (20, Edition.MORNING),  # 07:00 Sydney
            (1, Edition.MORNING),  # 12:00 Sydney
            (2, Edition.EVENING),  # 13:00 Sydney
            (0, Edition.MORNING),  # 11:00 Sydney
            (7, Edition.EVENING),  # 18:00 Sydney
        ],
    )
    def test_current_edition(self, utc_hour: int, expected: Edition) -> None:
        """The nearest scheduled hour wins."""
        now = datetime(2026, 3, 2, utc_hour, 0, tzinfo=UTC)
        assert current_edition(SYDNEY, now) == expected

    def test_is_due(self) -> None:
        """Only the scheduled local hours are due."""
        assert is_due(SYDNEY, datetime(2026, 3, 1, 20, 0, tzinfo=UTC))
        assert is_due(SYDNEY, datetime(2026, 3, 2, 7, 0, tzinfo=UTC))
        assert not is_due(SYDNEY, FIXED_NOW)
