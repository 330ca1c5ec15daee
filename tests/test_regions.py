"""Tests for region enumeration."""

from unittest.mock import MagicMock

import pytest

from sensu_ec2_discovery.discovery.models import Criteria
from sensu_ec2_discovery.discovery.regions import RegionEnumerator
from sensu_ec2_discovery.exceptions import DiscoveryError


class TestRegionEnumerator:
    def test_explicit_regions_returned_unchanged(self):
        source = MagicMock()
        regions = RegionEnumerator(source).regions(Criteria(regions=("us-west-2", "made-up-1")))
        assert regions == ["us-west-2", "made-up-1"]
        source.list_regions.assert_not_called()

    def test_live_enumeration(self):
        source = MagicMock()
        source.list_regions.return_value = ["eu-west-1", "us-east-1"]
        assert RegionEnumerator(source).regions(Criteria()) == ["eu-west-1", "us-east-1"]
        source.list_regions.assert_called_once_with()

    def test_empty_live_result_is_error(self):
        source = MagicMock()
        source.list_regions.return_value = []
        with pytest.raises(DiscoveryError, match="no regions"):
            RegionEnumerator(source).regions(Criteria())

    def test_live_failure_propagates(self):
        source = MagicMock()
        source.list_regions.side_effect = DiscoveryError("auth failure")
        with pytest.raises(DiscoveryError):
            RegionEnumerator(source).regions(Criteria())
