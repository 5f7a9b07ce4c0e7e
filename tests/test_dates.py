import unittest

from helpscout_cli.dates import build_date_query, parse_datetime
from helpscout_cli.errors import ValidationError


class ParseDatetimeTests(unittest.TestCase):
    def test_date_only_is_midnight_utc(self) -> None:
        self.assertEqual(parse_datetime("2024-01-15"), "2024-01-15T00:00:00Z")

    def test_offsets_are_converted_to_utc(self) -> None:
        self.assertEqual(parse_datetime("2024-01-15T10:30:00+02:00"), "2024-01-15T08:30:00Z")

    def test_invalid_date_raises_validation_error(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_datetime("not a date")
        self.assertEqual(ctx.exception.message, "Invalid date: not a date")


class BuildDateQueryTests(unittest.TestCase):
    def test_query_passes_through_without_dates(self) -> None:
        self.assertEqual(build_date_query(query="tag:vip"), "tag:vip")
        self.assertIsNone(build_date_query())

    def test_open_ended_range_is_combined_with_query(self) -> None:
        self.assertEqual(
            build_date_query(created_since="2024-01-01", query="tag:vip"),
            "(createdAt:[2024-01-01T00:00:00Z TO *] AND (tag:vip))",
        )

    def test_created_and_modified_ranges(self) -> None:
        self.assertEqual(
            build_date_query(created_before="2024-02-01", modified_since="2024-01-10"),
            "(createdAt:[* TO 2024-02-01T00:00:00Z] AND modifiedAt:[2024-01-10T00:00:00Z TO *])",
        )


if __name__ == "__main__":
    unittest.main()
