import unittest
from datetime import timezone

from codex_replay.date_utils import parse_iso_datetime, to_unix_seconds


class ParseIsoDatetimeTests(unittest.TestCase):
    def test_z_suffix_and_explicit_offsets(self) -> None:
        self.assertEqual(to_unix_seconds("2026-02-16T10:00:00Z"), 1771236000)
        self.assertEqual(to_unix_seconds("2026-02-16T12:00:00+02:00"), 1771236000)
        self.assertEqual(to_unix_seconds("2026-02-16T12:00:00+0200"), 1771236000)
        self.assertEqual(to_unix_seconds("2026-02-16T10:00:00+0000"), 1771236000)
        self.assertEqual(to_unix_seconds("2026-02-16T08:00:00-02"), 1771236000)

    def test_fractions_of_any_length(self) -> None:
        for value in (
            "2026-02-16T10:00:00.1Z",
            "2026-02-16T10:00:00.12Z",
            "2026-02-16T10:00:00.123Z",
            "2026-02-16T10:00:00.12345Z",
            "2026-02-16T10:00:00.123456789Z",
        ):
            with self.subTest(value=value):
                self.assertEqual(to_unix_seconds(value), 1771236000)

        parsed = parse_iso_datetime("2026-02-16T10:00:00.5Z")
        self.assertEqual(parsed.microsecond, 500000)

    def test_naive_values_are_utc(self) -> None:
        parsed = parse_iso_datetime("2026-02-16 10:00:00")

        self.assertEqual(parsed.tzinfo, timezone.utc)
        self.assertEqual(to_unix_seconds("2026-02-16T10:00"), 1771236000)

    def test_invalid_values(self) -> None:
        for value in (None, 12, "", "   ", "not a date", "2026-13-40T10:00:00Z"):
            with self.subTest(value=value):
                self.assertIsNone(parse_iso_datetime(value))
                self.assertIsNone(to_unix_seconds(value))


if __name__ == "__main__":
    unittest.main()
