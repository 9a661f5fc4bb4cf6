"""Kinds and controller wiring for the S3 bucket example provider."""

from __future__ import annotations

from .constants import API_GROUP, LONG_WAIT, SHORT_WAIT
from .controller.manager import (
    Manager,
    Watch,
    enqueue_request_for_claim,
    enqueue_request_for_object,
    enqueue_request_for_propagated,
)
from .reconcilers import (
    ClaimDefaultingReconciler,
    ClaimReconciler,
    ClaimSchedulingReconciler,
    ManagedReconciler,
    SecretPropagatingReconciler,
)
from .reconcilers.propagator import SECRET_KIND
from .reconcilers.references import APIReferenceResolver, FieldReferencer
from .resource import Kind
from .services.aws.client import BucketConnecter
from .services.store.base import StoreClient
from .utils.events import EventRecorder

STORAGE_GROUP = f"storage.{API_GROUP}"
VERSION = "v1alpha1"

PROVIDER = Kind(API_GROUP, VERSION, "Provider", "providers", namespaced=False)
BUCKET = Kind(STORAGE_GROUP, VERSION, "Bucket", "buckets", namespaced=False)
BUCKET_CLAIM = Kind(STORAGE_GROUP, VERSION, "BucketClaim", "bucketclaims")
BUCKET_CLASS = Kind(STORAGE_GROUP, VERSION, "BucketClass", "bucketclasses", namespaced=False)


def bucket_referencers() -> list[FieldReferencer]:
    return [
        FieldReferencer(
            BUCKET,
            ref_path="spec.forProvider.loggingBucketRef",
            target_path="spec.forProvider.loggingBucket",
        ),
    ]


def setup_bucket_controllers(
    manager: Manager,
    store: StoreClient,
    recorder: EventRecorder | None = None,
) -> None:
    """Register the Bucket, BucketClaim and connection secret controllers."""
    recorder = recorder or EventRecorder()

    manager.add_controller(
        ManagedReconciler(
            store,
            BUCKET,
            BucketConnecter(store, PROVIDER),
            resolver=APIReferenceResolver(store, BUCKET, bucket_referencers()),
            short_wait=SHORT_WAIT,
            long_wait=LONG_WAIT,
            recorder=recorder,
        ),
        [Watch(BUCKET, enqueue_request_for_object)],
    )
    manager.add_controller(
        ClaimReconciler(
            store,
            BUCKET_CLAIM,
            BUCKET_CLASS,
            BUCKET,
            short_wait=SHORT_WAIT,
            recorder=recorder,
        ),
        [
            Watch(BUCKET_CLAIM, enqueue_request_for_object),
            Watch(BUCKET, enqueue_request_for_claim),
        ],
    )
    manager.add_controller(
        ClaimSchedulingReconciler(store, BUCKET_CLAIM, BUCKET_CLASS, recorder=recorder),
        [Watch(BUCKET_CLAIM, enqueue_request_for_object)],
        workers=1,
    )
    manager.add_controller(
        ClaimDefaultingReconciler(store, BUCKET_CLAIM, BUCKET_CLASS, recorder=recorder),
        [Watch(BUCKET_CLAIM, enqueue_request_for_object)],
        workers=1,
    )
    manager.add_controller(
        SecretPropagatingReconciler(store, recorder=recorder),
        [Watch(SECRET_KIND, enqueue_request_for_propagated)],
    )
