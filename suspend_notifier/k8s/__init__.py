"""Kubernetes client for Flux custom resources."""

from suspend_notifier.k8s.client import ClusterClientError, ClusterResourceClient, ResourceNotFoundError

__all__ = ["ClusterClientError", "ClusterResourceClient", "ResourceNotFoundError"]
