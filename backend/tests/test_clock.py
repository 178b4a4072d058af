from datetime import date, datetime, time, timezone

import pytest

from streakdsa.engine.clock import (
    deadline_instant, is_valid_timezone, parse_reminder_time, resolve_timezone,
    today_key,
)


class TestTodayKey:
    def test_utc(self):
        now = datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)
        assert today_key("UTC", now) == date(2026, 3, 1)

    def test_ahead_of_utc_rolls_over_early(self):
        # 20:00 UTC is 01:30 next day in Kolkata (UTC+5:30)
        now = datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc)
        assert today_key("Asia/Kolkata", now) == date(2026, 3, 2)

    def test_behind_utc_rolls_over_late(self):
        now = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)
        assert today_key("America/New_York", now) == date(2026, 3, 1)


class TestResolveTimezone:
    def test_valid_zone(self):
        assert resolve_timezone("Asia/Kolkata").key == "Asia/Kolkata"

    def test_unknown_zone_falls_back(self, caplog):
        assert resolve_timezone("Mars/Olympus_Mons").key == "UTC"
        assert "Invalid timezone" in caplog.text

    def test_missing_zone_falls_back(self):
        assert resolve_timezone(None).key == "UTC"
        assert resolve_timezone("").key == "UTC"

    def test_bad_zone_never_fatal_for_today_key(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert today_key("not a zone", now) == date(2026, 3, 1)

    @pytest.mark.parametrize("tz", ["America", "Europe", "a" * 300])
    def test_directory_or_overlong_zone_falls_back(self, tz):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert resolve_timezone(tz).key == "UTC"
        assert today_key(tz, now) == date(2026, 3, 1)
        assert deadline_instant(tz, "23:00", date(2026, 3, 1)) == datetime(2026, 3, 1, 23, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("tz", ["America", "a" * 300, "Mars/Base"])
    def test_is_valid_timezone_rejects(self, tz):
        assert not is_valid_timezone(tz)

    def test_is_valid_timezone_accepts(self):
        assert is_valid_timezone("Europe/Berlin")


class TestReminderTime:
    def test_parse(self):
        assert parse_reminder_time("07:45") == time(7, 45)

    def test_malformed_falls_back_to_default(self):
        assert parse_reminder_time("25:99") == time(23, 0)
        assert parse_reminder_time(None) == time(23, 0)


class TestDeadlineInstant:
    def test_kolkata_23_00(self):
        deadline = deadline_instant("Asia/Kolkata", "23:00", date(2026, 3, 1))
        assert deadline == datetime(2026, 3, 1, 17, 30, tzinfo=timezone.utc)

    def test_dst_zone_uses_local_offset(self):
        # New York is on EDT (UTC-4) in July
        deadline = deadline_instant("America/New_York", "21:00", date(2026, 7, 1))
        assert deadline == datetime(2026, 7, 2, 1, 0, tzinfo=timezone.utc)

    def test_invalid_zone_uses_default(self):
        deadline = deadline_instant("Nowhere/Land", "23:00", date(2026, 3, 1))
        assert deadline == datetime(2026, 3, 1, 23, 0, tzinfo=timezone.utc)
