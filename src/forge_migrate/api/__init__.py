"""Forge REST API client, rate limiting and exceptions."""
