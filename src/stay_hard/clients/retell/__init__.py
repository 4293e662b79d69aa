"""Retell AI voice calls."""
