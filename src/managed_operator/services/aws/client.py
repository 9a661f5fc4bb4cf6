"""External client managing S3 buckets through boto3.

This is the example provider wired up by the operator entry point. A Bucket
managed resource looks like::

    spec:
      providerRef: {name: wasabi, namespace: storage}
      reclaimPolicy: Delete
      writeConnectionSecretToRef: {name: bucket-conn, namespace: storage}
      forProvider:
        region: eu-central-1
        versioning: true
        tags: {team: data}
        loggingBucketRef: {name: access-logs}

The referenced Provider holds the endpoint, region and a credentials secret.
``loggingBucketRef`` names another Bucket; it is resolved into
``forProvider.loggingBucket`` before the bucket is observed.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ... import metrics
from ...constants import RECONCILE_TIMEOUT
from ...errors import NotFoundError
from ...resource import Kind, Request, set_bindable
from ...utils.conditions import available, set_conditions
from ...utils.context import check_deadline
from ...utils.fieldpath import get_field, set_field
from ...utils.meta import get_external_name, get_name, get_namespace
from ...utils.secrets import decode_details
from ..store.base import StoreClient
from ..external.base import ExternalCreation, ExternalObservation, ExternalUpdate

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
S3_CONNECT_TIMEOUT = 10.0
S3_MAX_ATTEMPTS = 2
_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def create_s3_client(
    endpoint: str | None,
    region: str,
    access_key: str,
    secret_key: str,
    path_style: bool = True,
    insecure_skip_verify: bool = False,
    timeout: float = RECONCILE_TIMEOUT,
) -> Any:
    """Build a boto3 S3 client.

    Args:
        endpoint: S3 endpoint URL, None for AWS itself
        region: Default region
        access_key: Access key ID
        secret_key: Secret access key
        path_style: Use path-style addressing
        insecure_skip_verify: Skip TLS verification
        timeout: Reconcile deadline in seconds, bounds each request

    Returns:
        boto3 S3 client
    """
    config = Config(
        signature_version="s3v4",
        s3={"addressing_style": "path" if path_style else "auto"},
        connect_timeout=min(S3_CONNECT_TIMEOUT, timeout),
        read_timeout=timeout / S3_MAX_ATTEMPTS,
        retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        endpoint_url=endpoint,
        region_name=region,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        config=config,
        verify=not insecure_skip_verify,
    )


class BucketConnecter:
    """Connects Bucket managed resources to S3 using their Provider's credentials."""

    def __init__(self, store: StoreClient, provider_kind: Kind) -> None:
        self.store = store
        self.provider_kind = provider_kind

    def connect(self, managed: dict[str, Any]) -> "BucketClient":
        """Build a BucketClient for the managed resource.

        Raises:
            ValueError: If the provider reference or credentials are incomplete
            NotFoundError: If the Provider or its credentials secret is missing
        """
        ref = get_field(managed, "spec.providerRef") or {}
        if not ref.get("name"):
            raise ValueError("spec.providerRef.name is required")
        provider_ns = ref.get("namespace") or get_namespace(managed)
        provider = self.store.get(self.provider_kind, Request(provider_ns, ref["name"]))

        spec = provider.get("spec") or {}
        region = spec.get("region") or DEFAULT_REGION
        auth = spec.get("auth") or {}
        secret_ref = auth.get("secretRef") or {}
        if not secret_ref.get("name"):
            raise ValueError(f"provider {ref['name']} has no auth.secretRef")

        secret = self.store.get_secret(
            secret_ref.get("namespace") or get_namespace(provider), secret_ref["name"]
        )
        data = decode_details(secret.get("data"))
        access_key_field = auth.get("accessKeyIdKey", "access-key-id")
        secret_key_field = auth.get("secretAccessKeyKey", "secret-access-key")
        if access_key_field not in data or secret_key_field not in data:
            raise NotFoundError(f"credentials secret {secret_ref['name']} is missing keys")

        s3 = create_s3_client(
            endpoint=spec.get("endpoint"),
            region=region,
            access_key=data[access_key_field].decode("utf-8"),
            secret_key=data[secret_key_field].decode("utf-8"),
            path_style=spec.get("pathStyle", True),
            insecure_skip_verify=(spec.get("tls") or {}).get("insecureSkipVerify", False),
        )
        return BucketClient(s3, endpoint=spec.get("endpoint") or "", default_region=region)


class BucketClient:
    """ExternalClient for one S3 bucket."""

    def __init__(self, s3: Any, endpoint: str = "", default_region: str = DEFAULT_REGION) -> None:
        self.s3 = s3
        self.endpoint = endpoint
        self.default_region = default_region

    @staticmethod
    def bucket_name(managed: dict[str, Any]) -> str:
        return get_external_name(managed) or get_name(managed)

    def _call(self, method: str, **kwargs: Any) -> Any:
        """Invoke an S3 API method unless the reconcile deadline has passed."""
        check_deadline()
        return getattr(self.s3, method)(**kwargs)

    def _record(self, operation: str, result: str) -> None:
        metrics.external_operations_total.labels(operation=operation, result=result).inc()

    def _connection_details(self, managed: dict[str, Any]) -> dict[str, bytes]:
        region = get_field(managed, "spec.forProvider.region") or self.default_region
        details = {
            "bucket": self.bucket_name(managed).encode("utf-8"),
            "region": region.encode("utf-8"),
        }
        if self.endpoint:
            details["endpoint"] = self.endpoint.encode("utf-8")
        return details

    def _get_versioning(self, name: str) -> bool:
        response = self._call("get_bucket_versioning", Bucket=name)
        return response.get("Status") == "Enabled"

    def _get_tags(self, name: str) -> dict[str, str]:
        try:
            response = self._call("get_bucket_tagging", Bucket=name)
        except ClientError as e:
            if _error_code(e) == "NoSuchTagSet":
                return {}
            raise
        return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}

    def _get_logging_target(self, name: str) -> str | None:
        response = self._call("get_bucket_logging", Bucket=name)
        return (response.get("LoggingEnabled") or {}).get("TargetBucket")

    def _apply(self, name: str, params: dict[str, Any]) -> None:
        if "versioning" in params:
            self._call(
                "put_bucket_versioning",
                Bucket=name,
                VersioningConfiguration={
                    "Status": "Enabled" if params["versioning"] else "Suspended"
                },
            )
        tags = params.get("tags")
        if tags:
            self._call(
                "put_bucket_tagging",
                Bucket=name,
                Tagging={"TagSet": [{"Key": k, "Value": v} for k, v in sorted(tags.items())]},
            )
        target = params.get("loggingBucket")
        if target:
            self._call(
                "put_bucket_logging",
                Bucket=name,
                BucketLoggingStatus={
                    "LoggingEnabled": {"TargetBucket": target, "TargetPrefix": f"{name}/"}
                },
            )

    def observe(self, managed: dict[str, Any]) -> ExternalObservation:
        name = self.bucket_name(managed)
        try:
            self._call("head_bucket", Bucket=name)
        except ClientError as e:
            if _error_code(e) in _MISSING_BUCKET_CODES:
                self._record("observe", "absent")
                return ExternalObservation(resource_exists=False)
            self._record("observe", "error")
            raise

        params = get_field(managed, "spec.forProvider") or {}
        late_initialized = False
        if not params.get("region"):
            location = self._call("get_bucket_location", Bucket=name).get("LocationConstraint")
            set_field(managed, "spec.forProvider.region", location or DEFAULT_REGION)
            late_initialized = True

        up_to_date = True
        if "versioning" in params and self._get_versioning(name) != bool(params["versioning"]):
            up_to_date = False
        desired_tags = params.get("tags") or {}
        if desired_tags and self._get_tags(name) != desired_tags:
            up_to_date = False
        target = params.get("loggingBucket")
        if target and self._get_logging_target(name) != target:
            up_to_date = False

        set_conditions(managed, available())
        set_bindable(managed)
        self._record("observe", "success")
        return ExternalObservation(
            resource_exists=True,
            resource_up_to_date=up_to_date,
            resource_late_initialized=late_initialized,
            connection_details=self._connection_details(managed),
        )

    def create(self, managed: dict[str, Any]) -> ExternalCreation:
        name = self.bucket_name(managed)
        params = get_field(managed, "spec.forProvider") or {}
        region = params.get("region") or self.default_region

        create_params: dict[str, Any] = {"Bucket": name}
        if region != DEFAULT_REGION:
            create_params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._call("create_bucket", **create_params)
        except ClientError as e:
            if _error_code(e) != "BucketAlreadyOwnedByYou":
                self._record("create", "error")
                raise
            logger.info(f"Bucket {name} already exists and is owned by us")

        self._apply(name, params)
        self._record("create", "success")
        return ExternalCreation(connection_details=self._connection_details(managed))

    def update(self, managed: dict[str, Any]) -> ExternalUpdate:
        name = self.bucket_name(managed)
        self._apply(name, get_field(managed, "spec.forProvider") or {})
        self._record("update", "success")
        return ExternalUpdate(connection_details=self._connection_details(managed))

    def delete(self, managed: dict[str, Any]) -> None:
        name = self.bucket_name(managed)
        try:
            self._call("delete_bucket", Bucket=name)
        except ClientError as e:
            if _error_code(e) in _MISSING_BUCKET_CODES:
                self._record("delete", "absent")
                return
            self._record("delete", "error")
            raise
        self._record("delete", "success")
