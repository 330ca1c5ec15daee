"""Cloud discovery package: provider Protocol for region and instance listing."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import DiscoveredInstance, Filter


@runtime_checkable
class InstanceSource(Protocol):
    """Protocol that every cloud instance source must satisfy."""

    def list_regions(self) -> list[str]:
        """Return every region available to the configured account."""
        ...

    def iter_instances(self, region: str, filters: Sequence[Filter]) -> Iterator[DiscoveredInstance]:
        """Lazily yield the instances in ``region`` matching all ``filters``."""
        ...
