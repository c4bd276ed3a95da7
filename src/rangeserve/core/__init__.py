"""Range resolution and download orchestration."""
