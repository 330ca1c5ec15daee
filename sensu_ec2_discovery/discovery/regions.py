"""Determines which regions a discovery pass queries."""

from __future__ import annotations

import logging

from ..exceptions import DiscoveryError
from . import InstanceSource
from .models import Criteria

logger = logging.getLogger(__name__)


class RegionEnumerator:
    """Uses the operator's region list, or asks the provider for all of them."""

    def __init__(self, source: InstanceSource):
        self._source = source

    def regions(self, criteria: Criteria) -> list[str]:
        if criteria.regions:
            # Not checked against real region names; a bad one fails at fetch time.
            return list(criteria.regions)

        regions = self._source.list_regions()
        if not regions:
            raise DiscoveryError("Region enumeration returned no regions")

        logger.info("Enumerated %d regions", len(regions))
        return regions
