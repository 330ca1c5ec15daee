"""Maps discovered EC2 instances onto Sensu proxy entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..discovery.models import DiscoveredInstance

PROXY_ENTITY_CLASS = "proxy"
DEFAULT_NAMESPACE = "default"

ANNOTATION_REGION = "ec2.amazonaws.com/region"
ANNOTATION_AVAILABILITY_ZONE = "ec2.amazonaws.com/availability-zone"
ANNOTATION_PUBLIC_ADDRESS = "ec2.amazonaws.com/public-address"


@dataclass(frozen=True)
class Entity:
    """A Sensu Go entity whose checks are executed on its behalf (entity_class=proxy)."""

    name: str
    namespace: str = DEFAULT_NAMESPACE
    entity_class: str = PROXY_ENTITY_CLASS
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_api(self) -> dict[str, Any]:
        """Serialize in the core/v2 Entity shape."""
        return {
            "entity_class": self.entity_class,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
                "annotations": dict(self.annotations),
            },
        }


def entity_from_instance(instance: DiscoveredInstance, namespace: str = DEFAULT_NAMESPACE) -> Entity:
    """Build the proxy entity for an instance.

    The entity name is the instance ID and nothing else, so the same instance
    maps to the same entity on every pass.
    """
    if not instance.instance_id:
        raise ValueError("EC2 instance record has no InstanceId")

    annotations = {ANNOTATION_REGION: instance.region}
    if instance.availability_zone:
        annotations[ANNOTATION_AVAILABILITY_ZONE] = instance.availability_zone
    if instance.public_address:
        annotations[ANNOTATION_PUBLIC_ADDRESS] = instance.public_address

    return Entity(
        name=instance.instance_id,
        namespace=namespace,
        labels=dict(instance.tags),
        annotations=annotations,
    )
