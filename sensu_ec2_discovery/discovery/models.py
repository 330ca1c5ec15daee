"""Data models for discovery criteria, EC2 query filters and discovered instances."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

STATE_FILTER_NAME = "instance-state-name"
TAG_FILTER_PREFIX = "tag:"


@dataclass(frozen=True)
class Criteria:
    """Operator-supplied selection criteria for one discovery pass."""

    states: frozenset[str] = frozenset()
    regions: tuple[str, ...] = ()  # empty = every region the account can see
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Filter:
    """A single EC2 DescribeInstances filter. Filters are ANDed together server-side."""

    name: str
    values: tuple[str, ...]

    def to_api(self) -> dict[str, Any]:
        return {"Name": self.name, "Values": list(self.values)}


@dataclass(frozen=True)
class DiscoveredInstance:
    """A single EC2 instance returned by DescribeInstances."""

    instance_id: str
    region: str
    state: str = "unknown"
    public_address: str | None = None  # public DNS name, falling back to public IP
    private_ip: str | None = None
    availability_zone: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
