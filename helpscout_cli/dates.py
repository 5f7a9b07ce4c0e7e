"""Date parsing for filter flags."""

from __future__ import annotations

from datetime import timezone
from typing import List, Optional

from dateutil import parser as date_parser

from helpscout_cli.errors import ValidationError


def parse_datetime(value: str) -> str:
    """Normalize a free-form date to ``YYYY-MM-DDTHH:MM:SSZ`` (UTC).

    Naive inputs are taken as UTC.
    """
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as exc:
        raise ValidationError(f"Invalid date: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _range_clause(field: str, since: Optional[str], before: Optional[str]) -> Optional[str]:
    if not since and not before:
        return None
    start = parse_datetime(since) if since else "*"
    end = parse_datetime(before) if before else "*"
    return f"{field}:[{start} TO {end}]"


def build_date_query(
    created_since: Optional[str] = None,
    created_before: Optional[str] = None,
    modified_since: Optional[str] = None,
    modified_before: Optional[str] = None,
    query: Optional[str] = None,
) -> Optional[str]:
    """Combine date ranges and a free-text query into one search query."""
    clauses: List[str] = []
    for clause in (
        _range_clause("createdAt", created_since, created_before),
        _range_clause("modifiedAt", modified_since, modified_before),
    ):
        if clause:
            clauses.append(clause)
    if not clauses:
        return query or None
    if query:
        clauses.append(f"({query})")
    return "(" + " AND ".join(clauses) + ")"
