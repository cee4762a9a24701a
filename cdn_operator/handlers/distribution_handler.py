"""Distribution resource event handlers."""

import logging
from datetime import datetime, timezone
from typing import Any

import kopf
import pydantic
from kubernetes.client.exceptions import ApiException
from prometheus_client import start_http_server

from cdn_operator.config import get_config
from cdn_operator.models import Distribution, ReferenceKind
from cdn_operator.reconciler import ObjectKey, ReconcileResult, RequeueKind, get_reconciler
from cdn_operator.utils.metrics import get_metrics

logger = logging.getLogger(__name__)

config = get_config()
GROUP = config.api_group
VERSION = config.api_version

# Kinds whose changes fan out to the Distributions referencing them
CLUSTER_SCOPED_KINDS = {ReferenceKind.CLUSTER_DISTRIBUTION_CLASS.value}


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure logging, kopf and the metrics endpoint."""
    logging.getLogger().setLevel(config.log_level.upper())

    # Requeues surface as temporary errors; only post warnings as events
    settings.posting.level = logging.WARNING
    settings.execution.max_workers = config.max_workers

    start_http_server(config.metrics_port, registry=get_metrics().registry)
    logger.info(f"Serving metrics on port {config.metrics_port}")


def requeue(result: ReconcileResult, retry: int) -> None:
    """
    Translate a reconcile result into kopf's retry mechanism.

    Immediate requeues back off exponentially with the retry count, up
    to the configured cap; scheduled requeues use their own delay.

    Raises:
        kopf.TemporaryError: Whenever the Distribution needs another pass
    """
    kind = result.requeue.kind
    if kind == RequeueKind.NONE:
        return

    message = str(result.error) if result.error is not None else "Distribution is not ready yet"
    if kind == RequeueKind.IMMEDIATE:
        delay = min(2**retry, config.max_requeue_delay_seconds)
    else:
        delay = result.requeue.delay.total_seconds()
    raise kopf.TemporaryError(message, delay=delay)


@kopf.on.create(GROUP, VERSION, config.distribution_plural)
@kopf.on.update(GROUP, VERSION, config.distribution_plural)
@kopf.on.resume(GROUP, VERSION, config.distribution_plural)
def reconcile_distribution(name: str, namespace: str, retry: int, **_: Any) -> None:
    """
    Reconcile a Distribution whenever it or anything it references changes.

    Args:
        name: Distribution name
        namespace: Kubernetes namespace
        retry: How many times kopf has retried this handler
    """
    logger.info(f"Reconciling Distribution {namespace}/{name}")
    requeue(get_reconciler().reconcile(ObjectKey(namespace, name)), retry)


@kopf.on.delete(GROUP, VERSION, config.distribution_plural, optional=True)
def delete_distribution(name: str, namespace: str, retry: int, **_: Any) -> None:
    """
    Drain a deleting Distribution.

    The reconciler owns the finalizer, so this handler is optional for
    kopf and only drives the cleanup passes.
    """
    logger.info(f"Deleting Distribution {namespace}/{name}")
    requeue(get_reconciler().reconcile(ObjectKey(namespace, name)), retry)


@kopf.index(GROUP, VERSION, config.distribution_plural)
def distribution_references(
    name: str, namespace: str, body: kopf.Body, **_: Any
) -> dict[tuple[str, str, str], tuple[str, str]]:
    """Index Distributions by the (kind, namespace, name) of every object they reference."""
    try:
        distribution = Distribution.from_resource(dict(body))
    except pydantic.ValidationError:
        return {}

    refs = {}
    for kind, ref_name in distribution.references():
        ref_namespace = "" if kind in CLUSTER_SCOPED_KINDS else namespace
        refs[(kind, ref_namespace, ref_name)] = (namespace, name)
    return refs


def touch_referencing(
    index: kopf.Index, kind: str, namespace: str, name: str, event: dict[str, Any]
) -> None:
    """
    Trigger a reconcile of every Distribution referencing an object.

    The reconcile-trigger annotation is patched so the Distribution's own
    handler runs, keeping at most one reconcile per Distribution at a time.
    """
    # Initial listing: resume handlers already cover every Distribution
    if event.get("type") is None:
        return

    k8s = get_reconciler().k8s
    stamp = datetime.now(timezone.utc).isoformat()
    for dist_namespace, dist_name in index.get((kind, namespace, name), []):
        logger.info(
            f"{kind} {namespace}/{name} changed, reconciling Distribution {dist_namespace}/{dist_name}"
        )
        try:
            k8s.patch_distribution(
                dist_namespace,
                dist_name,
                {"metadata": {"annotations": {config.reconcile_trigger_annotation: stamp}}},
            )
        except ApiException as e:
            logger.warning(f"Could not trigger Distribution {dist_namespace}/{dist_name}: {e}")


@kopf.on.event(GROUP, VERSION, config.distribution_class_plural)
def distribution_class_changed(
    name: str, namespace: str, event: dict[str, Any], distribution_references: kopf.Index, **_: Any
) -> None:
    touch_referencing(
        distribution_references, ReferenceKind.DISTRIBUTION_CLASS.value, namespace, name, event
    )


@kopf.on.event(GROUP, VERSION, config.cluster_distribution_class_plural)
def cluster_distribution_class_changed(
    name: str, event: dict[str, Any], distribution_references: kopf.Index, **_: Any
) -> None:
    touch_referencing(
        distribution_references, ReferenceKind.CLUSTER_DISTRIBUTION_CLASS.value, "", name, event
    )


@kopf.on.event("v1", "secrets")
def secret_changed(
    name: str, namespace: str, event: dict[str, Any], distribution_references: kopf.Index, **_: Any
) -> None:
    touch_referencing(distribution_references, ReferenceKind.SECRET.value, namespace, name, event)


@kopf.on.event("v1", "services")
def service_changed(
    name: str, namespace: str, event: dict[str, Any], distribution_references: kopf.Index, **_: Any
) -> None:
    touch_referencing(distribution_references, ReferenceKind.SERVICE.value, namespace, name, event)


@kopf.on.event("networking.k8s.io", "v1", "ingresses")
def ingress_changed(
    name: str, namespace: str, event: dict[str, Any], distribution_references: kopf.Index, **_: Any
) -> None:
    touch_referencing(distribution_references, ReferenceKind.INGRESS.value, namespace, name, event)
