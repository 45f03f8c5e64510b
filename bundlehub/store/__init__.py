"""Content-addressed local bundle storage."""
