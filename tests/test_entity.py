"""Tests for mapping instances onto Sensu proxy entities."""

import pytest

from sensu_ec2_discovery.discovery.models import DiscoveredInstance
from sensu_ec2_discovery.registry.entity import (
    ANNOTATION_PUBLIC_ADDRESS,
    ANNOTATION_REGION,
    Entity,
    entity_from_instance,
)


def _inst(instance_id="i-aaa", tags=None, public_address=None) -> DiscoveredInstance:
    return DiscoveredInstance(
        instance_id=instance_id,
        region="us-west-2",
        state="running",
        public_address=public_address,
        tags=tags if tags is not None else {},
    )


class TestEntityFromInstance:
    def test_name_namespace_class_labels(self):
        entity = entity_from_instance(_inst(tags={"env": "prod"}))
        assert entity.name == "i-aaa"
        assert entity.namespace == "default"
        assert entity.entity_class == "proxy"
        assert entity.labels == {"env": "prod"}

    def test_custom_namespace(self):
        assert entity_from_instance(_inst(), "production").namespace == "production"

    def test_empty_tags_give_empty_labels(self):
        assert entity_from_instance(_inst(tags={})).labels == {}

    def test_name_stable_across_passes(self):
        first = entity_from_instance(_inst(tags={"env": "prod"}))
        second = entity_from_instance(_inst(tags={"env": "staging"}, public_address="1.2.3.4"))
        assert first.name == second.name

    def test_annotations(self):
        entity = entity_from_instance(_inst(public_address="ec2-1-2-3-4.compute.amazonaws.com"))
        assert entity.annotations[ANNOTATION_REGION] == "us-west-2"
        assert entity.annotations[ANNOTATION_PUBLIC_ADDRESS] == "ec2-1-2-3-4.compute.amazonaws.com"

    def test_no_public_address_annotation_when_absent(self):
        assert ANNOTATION_PUBLIC_ADDRESS not in entity_from_instance(_inst()).annotations

    def test_missing_identifier_raises(self):
        with pytest.raises(ValueError):
            entity_from_instance(_inst(instance_id=""))


class TestEntitySerialization:
    def test_core_v2_shape(self):
        entity = Entity(name="i-aaa", labels={"env": "prod"})
        assert entity.to_api() == {
            "entity_class": "proxy",
            "metadata": {
                "name": "i-aaa",
                "namespace": "default",
                "labels": {"env": "prod"},
                "annotations": {},
            },
        }
