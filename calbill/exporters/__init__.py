"""Exporters package."""
