"""Data models — enums, extraction records, persisted entities."""
