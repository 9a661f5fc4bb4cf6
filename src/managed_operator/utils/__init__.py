"""Utility modules for the Managed Resource Operator."""
