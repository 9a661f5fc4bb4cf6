"""External system clients driven by the managed resource reconciler."""
