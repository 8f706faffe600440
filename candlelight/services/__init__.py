"""Service layer for the memorial application."""
