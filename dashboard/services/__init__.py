"""Service helpers for the dashboard."""
