"""Command-line interface for perm-watchdog."""
