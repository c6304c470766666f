"""Alarms: reads, delete-by-rule operations and their status."""
