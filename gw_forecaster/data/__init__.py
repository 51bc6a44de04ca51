"""In-memory observation collections and per-well views."""
