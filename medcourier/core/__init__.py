"""Core infrastructure: event bus, scheduling and exceptions."""
