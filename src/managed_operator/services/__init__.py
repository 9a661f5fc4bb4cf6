"""Service integrations used by the reconcilers."""
