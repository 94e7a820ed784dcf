"""Satellite auth gateway."""
