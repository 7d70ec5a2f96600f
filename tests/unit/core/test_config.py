"""Unit tests for Settings and tracker exceptions."""
import pytest
from pydantic import ValidationError

from workshop_tracker.core.config import Settings
from workshop_tracker.core.exceptions import (
    ConfigMissing,
    DeliveryError,
    NoDestinationConfigured,
    NoScheduleConfigured,
    TrackerError
)


@pytest.mark.unit
class TestSettings:
    """Test Settings validation."""

    def test_defaults(self):
        """✅ Defaults for batching and concurrency."""
        config = Settings(telegram_bot_token="token")

        assert config.notification_chunk_size == 5
        assert config.catalog_fetch_concurrency >= 1
        assert config.item_url(42).endswith("?id=42")

    def test_log_level_normalised(self):
        """✅ Log level is upper-cased."""
        assert Settings(telegram_bot_token="token", log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        """✅ Unknown log level → ValidationError."""
        with pytest.raises(ValidationError):
            Settings(telegram_bot_token="token", log_level="LOUD")

    @pytest.mark.parametrize("field,value", [
        ("catalog_fetch_concurrency", 0),
        ("notification_chunk_size", 0),
        ("min_schedule_hours", 0),
    ])
    def test_invalid_bounds(self, field, value):
        """✅ Non-positive limits → ValidationError."""
        with pytest.raises(ValidationError):
            Settings(telegram_bot_token="token", **{field: value})


@pytest.mark.unit
class TestExceptions:
    """Test the error taxonomy."""

    def test_config_missing_family(self):
        """✅ Missing schedule and destination are ConfigMissing errors."""
        assert isinstance(NoScheduleConfigured(1), ConfigMissing)
        assert isinstance(NoDestinationConfigured(1), ConfigMissing)
        assert NoScheduleConfigured(7).server_id == 7

    def test_delivery_error(self):
        """✅ DeliveryError carries destination and delivered chunk count."""
        error = DeliveryError(99, "Forbidden", delivered_chunks=2)

        assert isinstance(error, TrackerError)
        assert error.destination_id == 99
        assert error.delivered_chunks == 2
        assert str(error) == "Forbidden"
