"""AWS boto3 client for listing regions and discovering EC2 instances."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import EC2Config
from ..exceptions import DiscoveryError
from .models import DiscoveredInstance, Filter

logger = logging.getLogger(__name__)

FALLBACK_REGION = "us-east-1"


class EC2Client:
    """Discovers EC2 instances region by region using server-side filters."""

    def __init__(self, config: EC2Config):
        self._config = config
        self._botocore_config = Config(
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            retries={"mode": "standard", "max_attempts": config.max_attempts},
        )

        session_kwargs: dict[str, Any] = {}
        if config.credential_profile:
            session_kwargs["profile_name"] = config.credential_profile
        self._session = boto3.Session(**session_kwargs)

    def _client(self, region: str):
        return self._session.client("ec2", region_name=region, config=self._botocore_config)

    # ── Regions ──────────────────────────────────────────────────────

    @property
    def enumeration_region(self) -> str:
        """Region queried for the region list: configured, else the SDK default, else us-east-1."""
        return self._config.default_region or self._session.region_name or FALLBACK_REGION

    def list_regions(self) -> list[str]:
        """Return every region enabled for the account, in the order EC2 returns them."""
        try:
            response = self._client(self.enumeration_region).describe_regions()
        except (ClientError, BotoCoreError) as exc:
            raise DiscoveryError(f"Could not list EC2 regions: {exc}") from exc

        regions = [r["RegionName"] for r in response.get("Regions", []) if r.get("RegionName")]
        logger.debug("describe_regions returned %d regions", len(regions))
        return regions

    # ── Instances ────────────────────────────────────────────────────

    def iter_instances(self, region: str, filters: Sequence[Filter]) -> Iterator[DiscoveredInstance]:
        """Yield instances in ``region`` matching every filter, following pagination.

        Provider errors surface as DiscoveryError at the point of iteration
        where they occur; instances yielded before that stay yielded.
        """
        api_filters = [f.to_api() for f in filters]
        try:
            paginator = self._client(region).get_paginator("describe_instances")
            for page in paginator.paginate(Filters=api_filters):
                for reservation in page.get("Reservations", []):
                    for raw in reservation.get("Instances", []):
                        yield parse_instance(raw, region)
        except (ClientError, BotoCoreError) as exc:
            raise DiscoveryError(f"Could not list instances in {region}: {exc}", region=region) from exc


def parse_instance(raw: dict[str, Any], region: str) -> DiscoveredInstance:
    """Parse a raw DescribeInstances instance dict into a DiscoveredInstance."""
    tags = {t["Key"]: t.get("Value", "") for t in raw.get("Tags", [])}

    # PublicDnsName is present but empty for instances without public networking
    public_address = raw.get("PublicDnsName") or raw.get("PublicIpAddress") or None

    placement = raw.get("Placement", {})
    availability_zone: str | None = placement.get("AvailabilityZone") or None

    return DiscoveredInstance(
        instance_id=raw["InstanceId"],
        region=region,
        state=raw.get("State", {}).get("Name", "unknown"),
        public_address=public_address,
        private_ip=raw.get("PrivateIpAddress") or None,
        availability_zone=availability_zone,
        tags=tags,
    )
