"""Kubernetes API client wrapper."""

import logging
from typing import Any, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from cdn_operator.config import OperatorConfig, get_config

logger = logging.getLogger(__name__)


class K8sClient:
    """
    Wrapper around Kubernetes Python client with helper methods.

    Provides simplified interface for the Kubernetes operations used by
    the CDN operator. Reads return ``None`` for objects that do not exist.
    """

    def __init__(self, settings: Optional[OperatorConfig] = None, load_config: bool = True):
        """
        Initialize Kubernetes client.

        Args:
            settings: Operator configuration (API group, version, plurals)
            load_config: Load in-cluster config, falling back to kubeconfig
        """
        self.settings = settings or get_config()
        self._core_v1: Optional[client.CoreV1Api] = None
        self._networking_v1: Optional[client.NetworkingV1Api] = None
        self._custom_objects: Optional[client.CustomObjectsApi] = None

        if load_config:
            try:
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes config")
            except config.ConfigException:
                config.load_kube_config()
                logger.info("Loaded kubeconfig from file")

    @property
    def core_v1(self) -> client.CoreV1Api:
        """Get CoreV1Api client."""
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api()
        return self._core_v1

    @property
    def networking_v1(self) -> client.NetworkingV1Api:
        """Get NetworkingV1Api client."""
        if self._networking_v1 is None:
            self._networking_v1 = client.NetworkingV1Api()
        return self._networking_v1

    @property
    def custom_objects(self) -> client.CustomObjectsApi:
        """Get CustomObjectsApi client."""
        if self._custom_objects is None:
            self._custom_objects = client.CustomObjectsApi()
        return self._custom_objects

    def _read(self, api_method: Any, *args: Any) -> Optional[Any]:
        """
        Call a read API method, mapping 404 to None.

        Args:
            api_method: API method to call (e.g., read_namespaced_secret)
            *args: Positional arguments for the API call

        Returns:
            The object, or None if not found
        """
        try:
            return api_method(*args)
        except ApiException as e:
            if e.status == 404:
                return None
            logger.error(f"Failed to read {args[-1] if args else 'object'}: {e}")
            raise

    def get_distribution(self, namespace: str, name: str) -> Optional[dict[str, Any]]:
        """Get a Distribution object, or None if it does not exist."""
        s = self.settings
        return self._read(
            self.custom_objects.get_namespaced_custom_object,
            s.api_group,
            s.api_version,
            namespace,
            s.distribution_plural,
            name,
        )

    def patch_distribution(
        self, namespace: str, name: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Merge-patch a Distribution (metadata such as finalizers or annotations).

        Raises:
            ApiException: If the patch fails
        """
        s = self.settings
        try:
            return self.custom_objects.patch_namespaced_custom_object(
                s.api_group, s.api_version, namespace, s.distribution_plural, name, body
            )
        except ApiException as e:
            logger.error(f"Failed to patch distribution {namespace}/{name}: {e}")
            raise

    def patch_distribution_status(
        self, namespace: str, name: str, status: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Merge-patch the status subresource of a Distribution.

        Raises:
            ApiException: If the patch fails
        """
        s = self.settings
        try:
            return self.custom_objects.patch_namespaced_custom_object_status(
                s.api_group,
                s.api_version,
                namespace,
                s.distribution_plural,
                name,
                {"status": status},
            )
        except ApiException as e:
            logger.error(f"Failed to update status of distribution {namespace}/{name}: {e}")
            raise

    def get_distribution_class(self, namespace: str, name: str) -> Optional[dict[str, Any]]:
        """Get a namespaced DistributionClass, or None if it does not exist."""
        s = self.settings
        return self._read(
            self.custom_objects.get_namespaced_custom_object,
            s.api_group,
            s.api_version,
            namespace,
            s.distribution_class_plural,
            name,
        )

    def get_cluster_distribution_class(self, name: str) -> Optional[dict[str, Any]]:
        """Get a ClusterDistributionClass, or None if it does not exist."""
        s = self.settings
        return self._read(
            self.custom_objects.get_cluster_custom_object,
            s.api_group,
            s.api_version,
            s.cluster_distribution_class_plural,
            name,
        )

    def get_secret(self, namespace: str, name: str) -> Optional[client.V1Secret]:
        """Get a Kubernetes secret, or None if not found."""
        return self._read(self.core_v1.read_namespaced_secret, name, namespace)

    def get_service(self, namespace: str, name: str) -> Optional[client.V1Service]:
        """Get a Kubernetes service, or None if not found."""
        return self._read(self.core_v1.read_namespaced_service, name, namespace)

    def get_ingress(self, namespace: str, name: str) -> Optional[client.V1Ingress]:
        """Get a Kubernetes ingress, or None if not found."""
        return self._read(self.networking_v1.read_namespaced_ingress, name, namespace)

    def get_service_account(
        self, namespace: str, name: str
    ) -> Optional[client.V1ServiceAccount]:
        """Get a Kubernetes service account, or None if not found."""
        return self._read(self.core_v1.read_namespaced_service_account, name, namespace)

    def create_service_account_token(self, namespace: str, name: str, audience: str) -> str:
        """
        Request a short-lived token for a service account.

        Args:
            namespace: Service account namespace
            name: Service account name
            audience: Audience the token is issued for

        Returns:
            The bearer token

        Raises:
            ApiException: If the token request fails
        """
        request = client.AuthenticationV1TokenRequest(
            spec=client.V1TokenRequestSpec(audiences=[audience])
        )
        try:
            response = self.core_v1.create_namespaced_service_account_token(
                name, namespace, request
            )
        except ApiException as e:
            logger.error(f"Failed to request token for service account {namespace}/{name}: {e}")
            raise
        return response.status.token
