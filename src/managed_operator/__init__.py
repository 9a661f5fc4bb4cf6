"""Managed Resource Operator: reconciles managed resources, claims and classes."""

__version__ = "0.1.0"
