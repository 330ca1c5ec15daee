"""Turns operator state and tag criteria into EC2 query filters."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from ..exceptions import ConfigurationError
from .models import STATE_FILTER_NAME, TAG_FILTER_PREFIX, Criteria, Filter

logger = logging.getLogger(__name__)

ListInput = str | Iterable[str] | None
TagInput = str | Iterable[str] | Mapping[str, str] | None


def _split(raw: ListInput) -> list[str]:
    """Accept "a,b,c" or ["a", "b,c"] and return the non-blank, stripped items."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    items: list[str] = []
    for chunk in raw:
        items.extend(part.strip() for part in str(chunk).split(","))
    return [item for item in items if item]


def parse_tags(raw: TagInput) -> dict[str, str]:
    """Parse ``key=value`` pairs into a mapping.

    Pairs are split on the first ``=`` so values may themselves contain ``=``.
    A pair without a separator, or with an empty key, is a configuration error.
    """
    if isinstance(raw, Mapping):
        tags = {str(k).strip(): str(v) for k, v in raw.items()}
        if "" in tags:
            raise ConfigurationError("Tag criteria contain an empty key")
        return tags

    tags = {}
    for pair in _split(raw):
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(
                f"Malformed tag criterion '{pair}': expected key=value"
            )
        tags[key] = value.strip()
    return tags


def parse_criteria(states: ListInput, regions: ListInput, tags: TagInput) -> Criteria:
    """Build immutable Criteria from raw operator input."""
    region_list: list[str] = []
    for region in _split(regions):
        if region not in region_list:
            region_list.append(region)

    return Criteria(
        states=frozenset(_split(states)),
        regions=tuple(region_list),
        tags=parse_tags(tags),
    )


def build_filters(criteria: Criteria) -> list[Filter]:
    """Return the DescribeInstances filters for the given criteria.

    State names are passed through verbatim; EC2 simply matches nothing for
    an unknown state.
    """
    filters: list[Filter] = []
    if criteria.states:
        filters.append(Filter(STATE_FILTER_NAME, tuple(sorted(criteria.states))))

    for key, value in criteria.tags.items():
        filters.append(Filter(f"{TAG_FILTER_PREFIX}{key}", (value,)))

    logger.debug("Built %d EC2 filters", len(filters))
    return filters
