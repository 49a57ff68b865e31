"""Domain layer - records, identifiers and schemas. No I/O."""
