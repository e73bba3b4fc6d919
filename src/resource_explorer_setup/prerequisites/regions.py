"""Target region resolution.

The region set is derived from the Account API region catalog: every
region that is enabled (or being enabled) plus the aggregator-home
region, which is always included.
"""

from typing import Any, Dict, List, Optional
import json
import logging
from botocore.exceptions import ClientError

from ..core.aws_client import AWSClientManager
from ..indexing.models import USABLE_REGION_STATUSES


logger = logging.getLogger(__name__)


class RegionCatalogError(Exception):
    """Raised when the region catalog cannot be fetched."""
    pass


def resolve_regions(catalog: List[Dict[str, Any]], home_region: str) -> List[str]:
    """Compute the target region list from a region catalog.

    Args:
        catalog: Entries with 'RegionName' and 'RegionOptStatus'
        home_region: Aggregator-home region, always included

    Returns:
        Usable regions in catalog order, with home_region appended when
        missing. Never empty.
    """
    regions = []
    for entry in catalog:
        name = entry.get('RegionName')
        if name and entry.get('RegionOptStatus') in USABLE_REGION_STATUSES and name not in regions:
            regions.append(name)

    if home_region not in regions:
        logger.info(f"Adding {home_region} as it is required for the aggregator")
        regions.append(home_region)

    return regions


class RegionResolver:
    """Fetches the region catalog and resolves the target region list."""

    def __init__(self, aws_client: AWSClientManager, home_region: str,
                 region: Optional[str] = None) -> None:
        """Initialize region resolver.

        Args:
            aws_client: Management account client manager
            home_region: Aggregator-home region
            region: Region for the Account API client
        """
        self.aws_client = aws_client
        self.home_region = home_region
        self.region = region
        self._account_client = None

    def _get_client(self):
        if self._account_client is None:
            self._account_client = self.aws_client.get_client(
                'account',
                self.region or self.aws_client.get_current_region()
            )
        return self._account_client

    def fetch_catalog(self) -> List[Dict[str, Any]]:
        """Fetch every region with its opt-in status.

        Returns:
            Region catalog entries across all pages

        Raises:
            RegionCatalogError: When the catalog cannot be fetched
        """
        try:
            paginator = self._get_client().get_paginator('list_regions')
            catalog = []
            for page in paginator.paginate():
                catalog.extend(page.get('Regions', []))
        except ClientError as e:
            raise RegionCatalogError(f"Failed to list regions: {e}") from e

        logger.debug(f"All regions and their status: {json.dumps(catalog, indent=2)}")
        return catalog

    def resolve(self) -> List[str]:
        """Fetch the catalog and resolve the target region list.

        Returns:
            Target region list, never empty
        """
        regions = resolve_regions(self.fetch_catalog(), self.home_region)
        logger.info(f"Processing regions: {regions}")
        return regions
