"""Adherence reminder escalation and notification service."""
