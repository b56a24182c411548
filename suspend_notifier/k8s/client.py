"""Kubernetes access for Flux custom resources.

Wraps kubernetes-asyncio's ApiextensionsV1Api (type discovery) and
CustomObjectsApi (instance listing and fetching), returning the reduced
snapshot types from ``suspend_notifier.models.resources``.
"""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from suspend_notifier.models.resources import (
    ResourceInstance,
    ResourceReference,
    ResourceType,
    TypeDefinition,
    VersionDefinition,
)
from suspend_notifier.observability.logging import get_logger

_logger = get_logger("k8s.client")

_HTTP_NOT_FOUND = 404


class ClusterClientError(Exception):
    """Raised when the API server request fails."""


class ResourceNotFoundError(ClusterClientError):
    """Raised when the requested resource does not exist."""


def _has_suspend_field(version: Any) -> bool:
    """Return True if the version's schema declares ``spec.suspend``."""
    schema = getattr(version, "schema", None)
    openapi = getattr(schema, "open_api_v3_schema", None)
    properties = getattr(openapi, "properties", None) or {}
    spec = properties.get("spec")
    spec_properties = getattr(spec, "properties", None) or {}
    return "suspend" in spec_properties


def _type_definition_from_crd(crd: Any) -> TypeDefinition:
    spec = crd.spec
    return TypeDefinition(
        group=spec.group,
        plural=spec.names.plural,
        versions=tuple(
            VersionDefinition(name=version.name, suspendable=_has_suspend_field(version))
            for version in spec.versions or []
            if version.served
        ),
    )


class ClusterResourceClient:
    """Reads Flux resource definitions and instances from the API server.

    Args:
        api_client: A configured kubernetes-asyncio ApiClient. Owned by
                    this object and closed by ``close()``.
    """

    def __init__(self, api_client: Any) -> None:
        self._api_client = api_client
        self._extensions = k8s_client.ApiextensionsV1Api(api_client)
        self._custom_objects = k8s_client.CustomObjectsApi(api_client)

    @classmethod
    async def create(cls, kubeconfig: str = "") -> ClusterResourceClient:
        """Configure from in-cluster service account, falling back to kubeconfig.

        An explicit *kubeconfig* path skips in-cluster detection.
        """
        if kubeconfig:
            await k8s_config.load_kube_config(config_file=kubeconfig)
            _logger.info("k8s client configured from kubeconfig", path=kubeconfig)
        else:
            try:
                # load_incluster_config() is synchronous in kubernetes-asyncio
                k8s_config.load_incluster_config()
                _logger.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                _logger.info("k8s client configured from kubeconfig")
        return cls(k8s_client.ApiClient())

    async def close(self) -> None:
        await self._api_client.close()

    async def list_type_definitions(self, label_selector: str) -> list[TypeDefinition]:
        """List custom resource definitions matching *label_selector*."""
        try:
            crds = await self._extensions.list_custom_resource_definition(label_selector=label_selector)
        except ApiException as exc:
            raise ClusterClientError(f"failed to fetch crds: {exc.status} {exc.reason}") from exc
        return [_type_definition_from_crd(crd) for crd in crds.items or []]

    async def list_instances(self, resource_type: ResourceType) -> list[ResourceInstance]:
        """List every instance of *resource_type* across all namespaces."""
        try:
            result = await self._custom_objects.list_cluster_custom_object(
                resource_type.group,
                resource_type.version,
                resource_type.kind,
            )
        except ApiException as exc:
            raise ClusterClientError(
                f"failed to list {resource_type.kind}.{resource_type.group}: {exc.status} {exc.reason}"
            ) from exc
        items: list[dict[str, Any]] = result.get("items", []) or []
        return [ResourceInstance.from_object(item) for item in items]

    async def get_instance(self, reference: ResourceReference) -> ResourceInstance:
        """Fetch the current state of a single resource.

        Raises:
            ResourceNotFoundError: the resource no longer exists.
            ClusterClientError:    any other API failure.
        """
        try:
            result = await self._custom_objects.get_namespaced_custom_object(
                reference.type.group,
                reference.type.version,
                reference.namespace,
                reference.type.kind,
                reference.name,
            )
        except ApiException as exc:
            if exc.status == _HTTP_NOT_FOUND:
                raise ResourceNotFoundError(f"resource not found: {reference.path}") from exc
            _logger.warning("failed to fetch resource", path=reference.path, status=exc.status)
            raise ClusterClientError(f"failed to get {reference.path}: {exc.status} {exc.reason}") from exc
        return ResourceInstance.from_object(result)
