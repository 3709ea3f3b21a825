"""Tests for settings resolved at import time."""

from zoneinfo import ZoneInfo

import pytest

from vision_pos.core import config


class TestBusinessZone:
    def test_known_zone(self):
        assert config._business_zone("America/New_York") == ZoneInfo("America/New_York")

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "America/New York", ""])
    def test_unknown_zone_fails_fast(self, name):
        """Should refuse a bad zone up front instead of failing every validation later."""
        with pytest.raises(ValueError, match="BUSINESS_TIMEZONE"):
            config._business_zone(name)

    def test_resolved_once(self):
        assert config.BUSINESS_TZ == ZoneInfo(config.BUSINESS_TIMEZONE)
