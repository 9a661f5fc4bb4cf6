"""Exception types raised by the reconcilers and their collaborators."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator


class OperatorError(Exception):
    """Base class for all operator errors."""


class StoreError(OperatorError):
    """A call against the Kubernetes API failed."""


class NotFoundError(StoreError):
    """The requested object does not exist."""


class ConflictError(StoreError):
    """The object changed since it was read, or already exists."""


class DeadlineExceeded(OperatorError):
    """The reconcile ran past its deadline."""


class ReferenceResolutionError(OperatorError):
    """Cross-resource references could not be resolved."""


class ReferencesAccessError(ReferenceResolutionError):
    """One or more referenced objects are missing or not ready.

    Args:
        statuses: Every reference status gathered in this pass
    """

    def __init__(self, statuses: list) -> None:
        self.statuses = list(statuses)
        not_ready = ", ".join(str(s) for s in self.statuses if not s.is_ready)
        super().__init__(f"referenced resources not ready: {not_ready}")


class ReferencerDefinitionError(TypeError):
    """A registered referencer is not usable.

    Raised for wiring mistakes that no amount of retrying can fix.
    """


class PublishError(OperatorError):
    """Connection details could not be written to a connection secret."""


class PropagationError(OperatorError):
    """Connection details could not be propagated between secrets."""


class BindingError(OperatorError):
    """A claim could not be bound to or unbound from a managed resource."""


class ConfigurationError(OperatorError):
    """A managed resource could not be configured from its class."""


@contextmanager
def ignore_not_found() -> Iterator[None]:
    """Swallow NotFoundError raised inside the block."""
    try:
        yield
    except NotFoundError:
        pass
