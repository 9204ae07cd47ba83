"""Utility helpers for the procurement kernel."""
