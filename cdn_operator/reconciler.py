"""Distribution reconciliation engine."""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional

import pydantic

from cdn_operator.config import OperatorConfig, get_config
from cdn_operator.errors import CDNError, ProviderError, ValidationError
from cdn_operator.models import Distribution, DistributionClassSpec, DistributionStatus, StatusDelta
from cdn_operator.providers import CDNProvider, ProviderResult, default_providers
from cdn_operator.resolvers import (
    Certificate,
    CertificateResolver,
    DistributionClassResolver,
    OriginResolver,
    ResolvedOrigin,
)
from cdn_operator.utils.k8s_client import K8sClient
from cdn_operator.utils.metrics import OperatorMetrics, get_metrics

logger = logging.getLogger(__name__)

READY_CONDITION = "Ready"


@dataclass(frozen=True)
class ObjectKey:
    """Namespace and name of a Distribution."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class RequeueKind(str, Enum):
    NONE = "none"
    IMMEDIATE = "immediate"
    AFTER = "after"


@dataclass(frozen=True)
class Requeue:
    """When the Distribution should be reconciled again."""

    kind: RequeueKind = RequeueKind.NONE
    delay: Optional[timedelta] = None

    @classmethod
    def none(cls) -> "Requeue":
        return cls()

    @classmethod
    def immediate(cls) -> "Requeue":
        return cls(kind=RequeueKind.IMMEDIATE)

    @classmethod
    def after(cls, delay: timedelta) -> "Requeue":
        return cls(kind=RequeueKind.AFTER, delay=delay)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconcile pass."""

    requeue: Requeue = Requeue()
    error: Optional[CDNError] = None


class DistributionReconciler:
    """
    Drives Distributions towards their desired state on every CDN provider.

    A pass either converges an active Distribution (finalizer, class,
    origin, certificate, providers, status) or drains a deleting one
    (providers' delete, status, finalizer removal). Passes are idempotent:
    with nothing changed externally, a second pass writes nothing.
    """

    def __init__(
        self,
        k8s: Optional[K8sClient] = None,
        providers: Optional[list[CDNProvider]] = None,
        settings: Optional[OperatorConfig] = None,
        metrics: Optional[OperatorMetrics] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            k8s: Kubernetes client
            providers: CDN providers, defaults to every registered one
            settings: Operator configuration
            metrics: Metrics collector, defaults to the global one
        """
        self.settings = settings or get_config()
        self.k8s = k8s or K8sClient(self.settings)
        self.providers = providers if providers is not None else default_providers(self.k8s, self.settings)
        self.metrics = metrics or get_metrics()
        self.classes = DistributionClassResolver(self.k8s)
        self.origins = OriginResolver(self.k8s)
        self.certificates = CertificateResolver(self.k8s)

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """
        Run one reconcile pass for a Distribution.

        Args:
            key: Namespace and name of the Distribution

        Returns:
            When to come back, and the error that made the pass fail if any
        """
        body = self.k8s.get_distribution(key.namespace, key.name)
        if body is None:
            logger.debug(f"Distribution {key} not found, nothing to do")
            self.metrics.forget(key.namespace, key.name)
            return ReconcileResult()

        try:
            distribution = Distribution.from_resource(body)
        except pydantic.ValidationError as e:
            logger.warning(f"Distribution {key} is invalid: {e}")
            self.metrics.record_error(key.namespace, key.name, ValidationError.__name__)
            return ReconcileResult(
                requeue=Requeue.after(self.settings.recheck_interval),
                error=ValidationError(f"invalid Distribution: {e}"),
            )

        if distribution.is_deleting:
            phase = "delete"
            if not distribution.has_finalizer(self.settings.finalizer):
                return ReconcileResult()
        else:
            phase = "reconcile"

        start = time.monotonic()
        try:
            if phase == "delete":
                result = self._reconcile_deleting(key, distribution)
            else:
                result = self._reconcile_active(key, distribution)
        finally:
            self.metrics.record_reconciliation(
                key.namespace, key.name, phase, time.monotonic() - start
            )

        if result.error is not None:
            self.metrics.record_error(key.namespace, key.name, type(result.error).__name__)
        return result

    # Active

    def _reconcile_active(self, key: ObjectKey, distribution: Distribution) -> ReconcileResult:
        self._ensure_finalizer(key, distribution)
        status = distribution.status.model_copy(deep=True)

        try:
            class_spec, origin, certificate = self._resolve(distribution)
        except CDNError as e:
            logger.warning(f"Could not resolve Distribution {key}: {e}")
            status.ready = False
            status.add_condition(READY_CONDITION, "False", e.reason, str(e))
            self._persist_status(key, distribution, status)
            self.metrics.update_ready(key.namespace, key.name, False)
            return ReconcileResult(requeue=Requeue.after(self.settings.recheck_interval), error=e)

        status.ready = True
        errors: list[CDNError] = []
        for provider in self.providers:
            if not provider.wants(class_spec):
                continue
            result = self._call(
                provider, key, distribution, "reconcile",
                provider.reconcile, class_spec, distribution, origin, certificate,
            )
            status = status.merge(result.delta)
            if result.error is not None:
                errors.append(result.error)

        if errors:
            status.ready = False
            status.add_condition(READY_CONDITION, "False", errors[0].reason, _messages(errors))
        elif status.ready:
            status.add_condition(READY_CONDITION, "True", "Deployed", "All providers are deployed")
        else:
            status.add_condition(READY_CONDITION, "False", "Progressing", "Waiting for providers to deploy")

        self._persist_status(key, distribution, status)
        self.metrics.update_ready(key.namespace, key.name, status.ready)

        if errors:
            return ReconcileResult(requeue=Requeue.immediate(), error=errors[0])
        if not status.ready:
            return ReconcileResult(requeue=Requeue.after(self.settings.recheck_interval))
        return ReconcileResult()

    def _resolve(
        self, distribution: Distribution
    ) -> tuple[DistributionClassSpec, ResolvedOrigin, Optional[Certificate]]:
        """Resolve the class, origin and (with TLS) certificate of a Distribution."""
        namespace = distribution.metadata.namespace
        class_spec = self.classes.get_spec(distribution.spec.distribution_class, namespace)
        origin = self.origins.resolve(distribution)
        certificate = None
        if distribution.spec.tls is not None:
            certificate = self.certificates.resolve(namespace, distribution.spec.tls.secret_name)
        return class_spec, origin, certificate

    def _ensure_finalizer(self, key: ObjectKey, distribution: Distribution) -> None:
        finalizer = self.settings.finalizer
        if distribution.has_finalizer(finalizer):
            return
        finalizers = [*distribution.metadata.finalizers, finalizer]
        self.k8s.patch_distribution(
            key.namespace,
            key.name,
            {
                "metadata": {
                    "finalizers": finalizers,
                    "resourceVersion": distribution.metadata.resource_version,
                }
            },
        )
        distribution.metadata.finalizers = finalizers
        logger.info(f"Added finalizer to Distribution {key}")

    # Deleting

    def _reconcile_deleting(self, key: ObjectKey, distribution: Distribution) -> ReconcileResult:
        try:
            class_spec = self.classes.get_spec(
                distribution.spec.distribution_class, distribution.metadata.namespace
            )
        except CDNError as e:
            logger.warning(f"Could not resolve the class of deleting Distribution {key}: {e}")
            return ReconcileResult(requeue=Requeue.after(self.settings.recheck_interval), error=e)

        status = distribution.status.model_copy(deep=True)
        status.ready = False
        errors: list[CDNError] = []
        remaining = False
        for provider in self.providers:
            if not provider.has(status):
                continue
            result = self._call(
                provider, key, distribution, "delete", provider.delete, class_spec, distribution
            )
            status = status.merge(result.delta)
            if result.error is not None:
                errors.append(result.error)
            if provider.has(status):
                remaining = True

        if errors:
            status.add_condition(READY_CONDITION, "False", errors[0].reason, _messages(errors))
        else:
            status.add_condition(READY_CONDITION, "False", "Deleting", "Removing external resources")

        # Status first: once the finalizer is gone the object may disappear
        self._persist_status(key, distribution, status)

        if errors:
            return ReconcileResult(requeue=Requeue.immediate(), error=errors[0])
        if remaining:
            return ReconcileResult(requeue=Requeue.after(self.settings.recheck_interval))

        self._remove_finalizer(key, distribution)
        self.metrics.forget(key.namespace, key.name)
        return ReconcileResult()

    def _remove_finalizer(self, key: ObjectKey, distribution: Distribution) -> None:
        finalizers = [f for f in distribution.metadata.finalizers if f != self.settings.finalizer]
        self.k8s.patch_distribution(key.namespace, key.name, {"metadata": {"finalizers": finalizers}})
        logger.info(f"Removed finalizer from Distribution {key}")

    # Shared

    def _call(
        self,
        provider: CDNProvider,
        key: ObjectKey,
        distribution: Distribution,
        action: str,
        method: Callable[..., ProviderResult],
        *args: Any,
    ) -> ProviderResult:
        """Invoke a provider operation; an unexpected exception becomes a ProviderError."""
        try:
            return method(*args)
        except Exception as e:
            logger.exception(f"Provider {provider.name} crashed during {action} of {key}")
            return ProviderResult(
                delta=_unchanged_delta(provider.name, distribution.status),
                error=ProviderError(f"{provider.name} {action} failed: {e}"),
            )

    def _persist_status(
        self, key: ObjectKey, distribution: Distribution, status: DistributionStatus
    ) -> None:
        """Write the status subresource, but only when it changed."""
        new = status.to_resource()
        if new == distribution.status.to_resource():
            return
        self.k8s.patch_distribution_status(key.namespace, key.name, new)
        distribution.status = status
        logger.debug(f"Updated status of Distribution {key}")


def _messages(errors: list[CDNError]) -> str:
    return "; ".join(str(e) for e in errors)


def _unchanged_delta(provider: str, status: DistributionStatus) -> StatusDelta:
    """A delta that leaves the provider's recorded state as it was."""
    endpoint = next((e for e in status.endpoints if e.provider == provider), None)
    return StatusDelta(
        provider=provider,
        external_id=status.external_id,
        external_certificate_id=status.external_certificate_id,
        external_status=status.external_status,
        endpoint=endpoint,
        ready=False,
    )


# Global reconciler instance
_reconciler: Optional[DistributionReconciler] = None


def get_reconciler() -> DistributionReconciler:
    """Get or create the global reconciler."""
    global _reconciler
    if _reconciler is None:
        _reconciler = DistributionReconciler()
    return _reconciler
