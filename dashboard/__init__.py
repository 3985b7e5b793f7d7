"""Price desk back-office application."""
