"""Configurators preparing a dynamically provisioned managed resource from its claim and class."""

from __future__ import annotations

import copy
from typing import Any, Protocol

from ..errors import ConfigurationError
from ..resource import (
    ReclaimPolicy,
    get_reclaim_policy,
    get_spec_template,
    get_write_connection_secret_to_reference,
    set_reclaim_policy,
    set_write_connection_secret_to_reference,
)
from ..utils import meta


class ManagedConfigurator(Protocol):
    def configure(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        ...


class ConfiguratorChain:
    """Runs configurators in order, stopping at the first error."""

    def __init__(self, *configurators: ManagedConfigurator) -> None:
        self.configurators = list(configurators)

    def configure(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        for configurator in self.configurators:
            configurator.configure(claim, cls, managed)


class ConfigureNames:
    """Names the managed resource after its claim.

    The API server generates the final name from ``<claim-ns>-<claim-name>-``.
    An external name set on the claim is carried over.
    """

    def configure(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        meta.metadata(managed)["generateName"] = (
            f"{meta.get_namespace(claim)}-{meta.get_name(claim)}-"
        )
        external_name = meta.get_external_name(claim)
        if external_name:
            meta.set_external_name(managed, external_name)


class ConfigureReclaimPolicy:
    """Keeps the managed resource's reclaim policy, else inherits the class's, else Delete."""

    def configure(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        if get_reclaim_policy(managed):
            return
        policy = get_spec_template(cls).get("reclaimPolicy") or ReclaimPolicy.DELETE
        try:
            set_reclaim_policy(managed, policy)
        except ValueError as e:
            raise ConfigurationError(f"invalid reclaim policy {policy!r}") from e


class ConfigureConnectionSecret:
    """Points the managed resource's connection secret into the class's secret namespace.

    The secret is named after the claim's UID so it is unique per claim.
    """

    def configure(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        if get_write_connection_secret_to_reference(managed) is not None:
            return
        namespace = get_spec_template(cls).get("writeConnectionSecretsToNamespace")
        if not namespace:
            return
        uid = meta.get_uid(claim)
        if not uid:
            raise ConfigurationError("claim has no UID to name its connection secret after")
        set_write_connection_secret_to_reference(managed, {"namespace": namespace, "name": uid})


class ConfigureForProvider:
    """Copies the class's provider reference and parameter defaults onto the managed resource.

    Parameters already set on the managed resource win over class defaults.
    """

    def configure(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        template = get_spec_template(cls)
        spec = managed.setdefault("spec", {})

        if template.get("providerRef") and not spec.get("providerRef"):
            spec["providerRef"] = copy.deepcopy(template["providerRef"])

        defaults = copy.deepcopy(template.get("forProvider") or {})
        defaults.update(spec.get("forProvider") or {})
        if defaults:
            spec["forProvider"] = defaults


def default_configurators() -> ConfiguratorChain:
    return ConfiguratorChain(
        ConfigureNames(),
        ConfigureReclaimPolicy(),
        ConfigureConnectionSecret(),
        ConfigureForProvider(),
    )
