"""Constants for the Managed Resource Operator."""

import os

# API Group
API_GROUP = "managed.cloud37.dev"
API_GROUP_VERSION = f"{API_GROUP}/v1alpha1"

# Controller identity used in logs and events
CONTROLLER_NAME = "managed-operator"

# Annotations
ANNOTATION_EXTERNAL_NAME = f"{API_GROUP}/external-name"
ANNOTATION_DEFAULT_CLASS = f"{API_GROUP}/is-default-class"
ANNOTATION_PROPAGATE_TO_PREFIX = f"to.propagate.{API_GROUP}/"
ANNOTATION_PROPAGATE_FROM_PREFIX = f"from.propagate.{API_GROUP}/"

# Finalizers
FINALIZER_MANAGED = f"finalizer.managedresource.{API_GROUP}"
FINALIZER_CLAIM = f"finalizer.resourceclaim.{API_GROUP}"

# Secret type of connection secrets created by this operator
SECRET_TYPE_CONNECTION = f"connection.{API_GROUP}/v1alpha1"

# Requeue intervals (seconds)
SHORT_WAIT = float(os.getenv("SHORT_WAIT_SECONDS", "30"))
LONG_WAIT = float(os.getenv("LONG_WAIT_SECONDS", "60"))

# Upper bound for a single reconcile, in seconds
RECONCILE_TIMEOUT = float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "60"))

# Upper bound for the class scheduling jitter, in seconds
MAX_JITTER = float(os.getenv("MAX_JITTER_SECONDS", "1.5"))

# Worker threads per controller
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "4"))

METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Condition Types
COND_READY = "Ready"
COND_SYNCED = "Synced"
COND_REFERENCES_RESOLVED = "ReferencesResolved"

# Condition Reasons
REASON_AVAILABLE = "Available"
REASON_UNAVAILABLE = "Unavailable"
REASON_CREATING = "Creating"
REASON_DELETING = "Deleting"
REASON_BINDING = "Binding"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_RECONCILE_ERROR = "ReconcileError"
REASON_RESOLUTION_SUCCESS = "ResolutionSuccess"
REASON_RESOLUTION_BLOCKED = "ResolutionBlocked"

# Event Reasons
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_CONNECT_FAILED = "CannotConnectToProvider"
EVENT_REASON_INITIALIZE_FAILED = "CannotInitializeManagedResource"
EVENT_REASON_RESOLVE_FAILED = "CannotResolveReferences"
EVENT_REASON_OBSERVE_FAILED = "CannotObserveExternalResource"
EVENT_REASON_CREATE_FAILED = "CannotCreateExternalResource"
EVENT_REASON_UPDATE_FAILED = "CannotUpdateExternalResource"
EVENT_REASON_DELETE_FAILED = "CannotDeleteExternalResource"
EVENT_REASON_PUBLISH_FAILED = "CannotPublishConnectionDetails"
EVENT_REASON_CREATED_EXTERNAL = "CreatedExternalResource"
EVENT_REASON_UPDATED_EXTERNAL = "UpdatedExternalResource"
EVENT_REASON_DELETED_EXTERNAL = "DeletedExternalResource"
EVENT_REASON_CONFIGURE_FAILED = "CannotConfigureManagedResource"
EVENT_REASON_CREATED_MANAGED = "CreatedManagedResource"
EVENT_REASON_PROPAGATE_FAILED = "CannotPropagateConnectionDetails"
EVENT_REASON_BIND_FAILED = "CannotBindManagedResource"
EVENT_REASON_BOUND = "BoundManagedResource"
EVENT_REASON_UNBIND_FAILED = "CannotUnbindManagedResource"
EVENT_REASON_UNBOUND = "UnboundManagedResource"
EVENT_REASON_CLASS_SELECTED = "SelectedResourceClass"
