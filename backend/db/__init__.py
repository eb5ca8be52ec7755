"""Query construction and execution helpers."""
