"""Resource identity and cluster snapshot data structures."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

# <group>/<version>/namespaces/<namespace>/<plural>/<name>
_PATH_SEGMENTS = 6


@dataclass(frozen=True)
class ResourceType:
    """A class of cluster resource.

    ``kind`` is the plural resource name as it appears in API paths
    (e.g. ``helmreleases``), not the CamelCase kind.
    """

    group: str
    version: str
    kind: str

    @property
    def group_kind(self) -> tuple[str, str]:
        """Version-independent identity used to query each type once."""
        return (self.group, self.kind)


@dataclass(frozen=True)
class ResourceReference:
    """A concrete resource instance."""

    type: ResourceType
    namespace: str
    name: str

    @classmethod
    def from_path(cls, path: str) -> ResourceReference:
        """Parse an audit log resource name into a reference.

        Raises:
            ValueError: if *path* does not have exactly six segments.
        """
        parts = path.split("/")
        if len(parts) != _PATH_SEGMENTS:
            raise ValueError(f"unexpected path format: {path}")
        return cls(
            type=ResourceType(group=parts[0], version=parts[1], kind=parts[4]),
            namespace=parts[3],
            name=parts[5],
        )

    @property
    def path(self) -> str:
        return "/".join(
            [self.type.group, self.type.version, "namespaces", self.namespace, self.type.kind, self.name]
        )

    @property
    def store_key(self) -> str:
        # Version is excluded so every served version maps to one entry.
        return f"resource:{self.type.group}:{self.type.kind}:{self.namespace}:{self.name}"

    def to_dict(self) -> dict[str, object]:
        return {
            "type": {
                "group": self.type.group,
                "version": self.type.version,
                "kind": self.type.kind,
            },
            "namespace": self.namespace,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ResourceReference:
        raw_type = data.get("type")
        type_data: dict[str, object] = raw_type if isinstance(raw_type, dict) else {}
        return cls(
            type=ResourceType(
                group=str(type_data.get("group", "")),
                version=str(type_data.get("version", "")),
                kind=str(type_data.get("kind", "")),
            ),
            namespace=str(data.get("namespace", "")),
            name=str(data.get("name", "")),
        )


@dataclass(frozen=True)
class VersionDefinition:
    """One served version of a custom resource definition."""

    name: str
    suspendable: bool


@dataclass(frozen=True)
class TypeDefinition:
    """An installed custom resource definition, reduced to what discovery needs."""

    group: str
    plural: str
    versions: tuple[VersionDefinition, ...] = field(default_factory=tuple)

    def resource_types(self) -> Iterator[ResourceType]:
        """Yield a ResourceType for every version whose spec exposes ``suspend``."""
        for version in self.versions:
            if version.suspendable:
                yield ResourceType(group=self.group, version=version.name, kind=self.plural)


@dataclass(frozen=True)
class ResourceInstance:
    """Point-in-time view of a suspendable resource."""

    namespace: str
    name: str
    suspended: bool

    @classmethod
    def from_object(cls, obj: dict[str, object]) -> ResourceInstance:
        """Build from a raw custom object as returned by the API server.

        A missing or non-boolean ``spec.suspend`` reads as not suspended.
        """
        metadata = obj.get("metadata")
        spec = obj.get("spec")
        meta: dict[str, object] = metadata if isinstance(metadata, dict) else {}
        spec_map: dict[str, object] = spec if isinstance(spec, dict) else {}
        return cls(
            namespace=str(meta.get("namespace", "")),
            name=str(meta.get("name", "")),
            suspended=spec_map.get("suspend") is True,
        )
