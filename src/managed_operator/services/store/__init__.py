"""Store clients for reading and writing Kubernetes objects."""

from .base import StoreClient
from .kubernetes import KubernetesStore

__all__ = ["StoreClient", "KubernetesStore"]
