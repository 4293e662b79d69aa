"""Scheduling, escalation and workflow services."""
