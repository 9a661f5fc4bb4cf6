"""Interfaces for clients of the external system a managed resource represents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from ...utils.secrets import ConnectionDetails


@dataclass
class ExternalObservation:
    """What Observe learned about the external resource."""

    resource_exists: bool = False
    resource_up_to_date: bool = False
    # Observe filled unset spec fields in from the external resource
    resource_late_initialized: bool = False
    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ExternalCreation:
    """Result of creating an external resource."""

    # Create set the external-name annotation, which must be persisted
    external_name_assigned: bool = False
    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ExternalUpdate:
    """Result of updating an external resource."""

    connection_details: ConnectionDetails = field(default_factory=dict)


class ExternalClient(Protocol):
    """Protocol defining the operations on one external resource.

    None of the operations may block waiting for the external system to
    converge, and all must be idempotent: creating a resource that already
    exists is not fatal and deleting an absent resource succeeds. Observe
    must not change the external resource, but it may update the managed
    resource in memory (late-initialized spec fields, status, binding phase).
    """

    def observe(self, managed: dict[str, Any]) -> ExternalObservation:
        ...

    def create(self, managed: dict[str, Any]) -> ExternalCreation:
        ...

    def update(self, managed: dict[str, Any]) -> ExternalUpdate:
        ...

    def delete(self, managed: dict[str, Any]) -> None:
        ...


class ExternalConnecter(Protocol):
    """Produces an ExternalClient for a managed resource."""

    def connect(self, managed: dict[str, Any]) -> ExternalClient:
        ...


class NopClient:
    """An ExternalClient that does nothing and reports the resource as up to date."""

    def observe(self, managed: dict[str, Any]) -> ExternalObservation:
        return ExternalObservation(resource_exists=True, resource_up_to_date=True)

    def create(self, managed: dict[str, Any]) -> ExternalCreation:
        return ExternalCreation()

    def update(self, managed: dict[str, Any]) -> ExternalUpdate:
        return ExternalUpdate()

    def delete(self, managed: dict[str, Any]) -> None:
        return None


class NopConnecter:
    """An ExternalConnecter that returns a NopClient."""

    def connect(self, managed: dict[str, Any]) -> ExternalClient:
        return NopClient()


class ExternalClientFns:
    """An ExternalClient assembled from plain callables.

    Args:
        observe: Called by observe
        create: Called by create, defaults to returning an empty creation
        update: Called by update, defaults to returning an empty update
        delete: Called by delete, defaults to doing nothing
    """

    def __init__(
        self,
        observe: Callable[[dict[str, Any]], ExternalObservation],
        create: Callable[[dict[str, Any]], ExternalCreation] | None = None,
        update: Callable[[dict[str, Any]], ExternalUpdate] | None = None,
        delete: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self._observe = observe
        self._create = create or (lambda managed: ExternalCreation())
        self._update = update or (lambda managed: ExternalUpdate())
        self._delete = delete or (lambda managed: None)

    def observe(self, managed: dict[str, Any]) -> ExternalObservation:
        return self._observe(managed)

    def create(self, managed: dict[str, Any]) -> ExternalCreation:
        return self._create(managed)

    def update(self, managed: dict[str, Any]) -> ExternalUpdate:
        return self._update(managed)

    def delete(self, managed: dict[str, Any]) -> None:
        self._delete(managed)


class ExternalConnecterFn:
    """An ExternalConnecter wrapping a callable."""

    def __init__(self, fn: Callable[[dict[str, Any]], ExternalClient]) -> None:
        self._fn = fn

    def connect(self, managed: dict[str, Any]) -> ExternalClient:
        return self._fn(managed)
