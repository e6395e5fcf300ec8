"""Proximity alert evaluation and scheduling."""
