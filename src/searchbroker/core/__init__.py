"""Core orchestration — backfill migration and platform lifecycle."""
