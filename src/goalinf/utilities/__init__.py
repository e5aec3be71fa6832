"""Utility functions used by the goal estimators."""
