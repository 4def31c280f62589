"""Event gateway runtime core."""
