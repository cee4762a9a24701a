"""Loads the (Cluster)DistributionClass referenced by a Distribution."""

import logging
from typing import Optional

import pydantic

from cdn_operator.errors import ResolutionError, ValidationError
from cdn_operator.models import DistributionClassSpec, ObjectReference, ReferenceKind
from cdn_operator.utils.k8s_client import K8sClient

logger = logging.getLogger(__name__)


class DistributionClassResolver:
    """
    Reads DistributionClass specs from an object reference.

    A ``ClusterDistributionClass`` is looked up by name only, a
    ``DistributionClass`` in the namespace of the referencing object.
    """

    def __init__(self, k8s: K8sClient):
        self.k8s = k8s

    def get_spec(self, ref: ObjectReference, caller_namespace: str) -> DistributionClassSpec:
        """
        Load the class spec for a reference.

        Args:
            ref: The Distribution's ``distributionClass`` reference
            caller_namespace: Namespace of the referencing Distribution

        Returns:
            The class spec

        Raises:
            ValidationError: If the kind is not a class kind or the class is malformed
            ResolutionError: If the class does not exist
        """
        if ref.kind == ReferenceKind.CLUSTER_DISTRIBUTION_CLASS.value:
            body = self.k8s.get_cluster_distribution_class(ref.name)
            where = ref.name
        elif ref.kind == ReferenceKind.DISTRIBUTION_CLASS.value:
            body = self.k8s.get_distribution_class(caller_namespace, ref.name)
            where = f"{caller_namespace}/{ref.name}"
        else:
            raise ValidationError(f"Unsupported distribution class kind {ref.kind!r}")

        if body is None:
            raise ResolutionError(f"{ref.kind} {where} not found")

        try:
            return DistributionClassSpec.from_resource(body)
        except pydantic.ValidationError as e:
            raise ValidationError(f"{ref.kind} {where} is invalid: {e}") from e

    @staticmethod
    def class_namespace(ref: ObjectReference, caller_namespace: str) -> Optional[str]:
        """
        Namespace that references made by the class default to.

        Namespaced classes resolve their secrets and service accounts
        next to the Distribution; cluster classes must name a namespace.
        """
        if ref.kind == ReferenceKind.DISTRIBUTION_CLASS.value:
            return caller_namespace
        return None
