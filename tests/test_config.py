"""Tests for src.config — Settings parsing and validation."""

import pytest
from pydantic import ValidationError

from src.config import Settings


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.TIMEZONE == "Europe/Paris"
        assert s.SWEEP_MINUTE == 5
        assert s.SWEEP_ISOLATE_EVENTS is False
        assert s.MAX_RANGE_DAYS == 366

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("no", False), ("", False)])
    def test_flag_parsing(self, raw, expected):
        assert Settings(SWEEP_ISOLATE_EVENTS=raw).SWEEP_ISOLATE_EVENTS is expected

    def test_minute_out_of_range(self):
        with pytest.raises(ValidationError):
            Settings(SWEEP_MINUTE="61")

    def test_max_range_positive(self):
        with pytest.raises(ValidationError):
            Settings(MAX_RANGE_DAYS="0")

    def test_log_level_normalized(self):
        assert Settings(LOG_LEVEL=" debug ").LOG_LEVEL == "DEBUG"
