"""Reconcilers for managed resources, claims, classes and connection secrets."""

from .claimbinding import ClaimReconciler
from .managed import ManagedReconciler
from .propagator import SecretPropagatingReconciler
from .scheduling import ClaimDefaultingReconciler, ClaimSchedulingReconciler

__all__ = [
    "ClaimReconciler",
    "ClaimDefaultingReconciler",
    "ClaimSchedulingReconciler",
    "ManagedReconciler",
    "SecretPropagatingReconciler",
]
