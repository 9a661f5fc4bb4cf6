"""Main entry point for the Managed Resource Operator.

Run with ``kopf run -m managed_operator.main``.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf
from kubernetes import config

from . import health
from . import logging as structured_logging
from .buckets import setup_bucket_controllers
from .constants import LOG_LEVEL, METRICS_PORT, RECONCILE_TIMEOUT
from .controller import Manager
from .services.store import KubernetesStore
from .utils.events import EventRecorder

logger = logging.getLogger(__name__)

store = KubernetesStore()
manager = Manager(timeout=RECONCILE_TIMEOUT)

# Watch handlers must be in the registry before kopf starts watching.
setup_bucket_controllers(manager, store, EventRecorder())


def load_kubernetes_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Configure the operator and start the controllers."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging(LOG_LEVEL)

    settings.posting.level = logging.INFO
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    load_kubernetes_config()

    # Start metrics HTTP server with health check endpoints
    memo.server = health.start_metrics_server(METRICS_PORT, ready=manager.is_running)

    manager.start()
    logger.info(f"Managed Resource Operator started, metrics on port {METRICS_PORT}")


@kopf.on.cleanup()
def cleanup(memo: kopf.Memo, **_: Any) -> None:
    """Stop the controllers and the metrics server."""
    manager.stop()
    server = getattr(memo, "server", None)
    if server is not None:
        server.shutdown()
