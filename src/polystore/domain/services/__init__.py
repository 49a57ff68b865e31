"""Domain services - pure logic shared by engines."""

from polystore.domain.services.criteria import field_matches, filter_records, matches_criteria

__all__ = [
    "field_matches",
    "filter_records",
    "matches_criteria",
]
