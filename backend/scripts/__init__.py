"""Operational scripts: schema setup, demo data and reconciliation."""
