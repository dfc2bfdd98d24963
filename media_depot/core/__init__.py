"""Core configuration, logging and Redis helpers."""
