"""Index topology reconciliation for one account.

Converges an account to one index per resolved region, a single
aggregator index (promoted in the home region unless one already exists
elsewhere) and a default view in the aggregator region. State is always
discovered from the service first; nothing from earlier runs is assumed.
"""

from typing import Callable, Dict, List, Optional
import logging

from ..core.aws_client import AWSClientManager
from ..core.errors import ErrorKind
from .client import ResourceExplorerClient, ResourceExplorerError
from .models import (
    IndexType,
    RunSummary,
    ViewDescriptor,
    VIEW_ALREADY_EXISTS,
    VIEW_CREATED,
)


logger = logging.getLogger(__name__)

DEFAULT_VIEW_NAME = 'all-resources-p0'


class IndexTopologyError(Exception):
    """Raised when an account cannot be converged."""
    pass


class IndexTopologyReconciler:
    """Reconciles the Resource Explorer topology of a single account."""

    def __init__(self, aws_client: AWSClientManager, home_region: str,
                 view_name: str = DEFAULT_VIEW_NAME,
                 client_factory: Callable[[AWSClientManager, str],
                                          ResourceExplorerClient] = ResourceExplorerClient):
        """Initialize the reconciler.

        Args:
            aws_client: Client manager holding the account's credentials
            home_region: Region that receives the aggregator and default view
            view_name: Name of the default view
            client_factory: Builds a Resource Explorer client for a region
        """
        self.aws_client = aws_client
        self.home_region = home_region
        self.view_name = view_name
        self._client_factory = client_factory
        self._explorers: Dict[str, ResourceExplorerClient] = {}

    def _explorer(self, region: str) -> ResourceExplorerClient:
        if region not in self._explorers:
            self._explorers[region] = self._client_factory(self.aws_client, region)
        return self._explorers[region]

    def reconcile(self, account_id: str, regions: List[str],
                  skip_aggregator: bool = False,
                  skip_default_view: bool = False) -> RunSummary:
        """Converge the account over the given regions.

        Args:
            account_id: Account being reconciled (for reporting)
            regions: Resolved region list, in processing order
            skip_aggregator: Skip aggregator discovery and promotion
            skip_default_view: Skip default view creation

        Returns:
            RunSummary for the account

        Raises:
            IndexTopologyError: When the home index cannot be ensured,
                promotion fails for a reason other than quota or cooldown,
                or the default view cannot be created or associated
        """
        summary = RunSummary(account_id=account_id, regions=list(regions))
        logger.info(f"Reconciling account {account_id} across {len(regions)} regions")

        existing_aggregator = None
        if skip_aggregator:
            logger.info("Skipping aggregator setup as requested")
        else:
            existing_aggregator = self.find_aggregator_region(regions, summary)

        self.ensure_home_index(summary)

        aggregator_region = existing_aggregator
        if not skip_aggregator and existing_aggregator is None:
            if self.promote_home_index(summary):
                aggregator_region = self.home_region
        summary.aggregator_region = aggregator_region

        if skip_default_view:
            logger.info("Skipping default view setup as requested")
        elif aggregator_region:
            summary.default_view = self.ensure_default_view(aggregator_region)
        else:
            logger.info("No aggregator region available, default view not created")

        self.ensure_remaining_indexes(regions, summary)

        logger.info(
            f"Account {account_id}: {len(summary.deployed_indexes)} indexes, "
            f"aggregator {summary.aggregator_region}, {len(summary.errors)} errors"
        )
        return summary

    def find_aggregator_region(self, regions: List[str],
                               summary: RunSummary) -> Optional[str]:
        """Scan regions in order for an existing aggregator index.

        The first aggregator found wins; the service allows only one per
        account. Listing failures are recorded and the scan moves on.

        Returns:
            Region of the aggregator index, or None
        """
        logger.info("Checking for existing aggregator...")
        for region in regions:
            try:
                indexes = self._explorer(region).list_indexes()
            except ResourceExplorerError as e:
                message = f"Failed to list indexes in {region}: {e}"
                logger.warning(message)
                summary.errors.append(message)
                continue

            for index in indexes:
                if index.is_aggregator:
                    logger.info(f"Found existing aggregator in {index.region}")
                    return index.region

        return None

    def ensure_home_index(self, summary: RunSummary) -> None:
        """Ensure an index exists in the home region.

        Raises:
            IndexTopologyError: On any failure other than the index being absent
        """
        region = self.home_region
        explorer = self._explorer(region)
        logger.info(f"Setting up index in {region}")

        try:
            index = explorer.get_index()
        except ResourceExplorerError as e:
            if not e.is_not_found:
                raise IndexTopologyError(
                    f"Failed to check index in home region {region}: {e}"
                ) from e
            index = None

        if index is not None and index.is_present:
            if index.is_active:
                logger.info(f"Index already exists in {region}")
            else:
                logger.info(f"Index in {region} not yet active, current state: {index.state.value}")
        else:
            try:
                explorer.create_index()
            except ResourceExplorerError as e:
                raise IndexTopologyError(
                    f"Failed to create index in home region {region}: {e}"
                ) from e

        summary.add_deployed(region)

    def promote_home_index(self, summary: RunSummary) -> bool:
        """Promote the home region index to aggregator.

        Quota and cooldown refusals are expected: they are recorded and
        promotion is abandoned for this run.

        Returns:
            True if the home index is the aggregator after this call

        Raises:
            IndexTopologyError: When promotion fails for any other reason
        """
        region = self.home_region
        explorer = self._explorer(region)

        try:
            indexes = explorer.list_indexes()
        except ResourceExplorerError as e:
            message = f"Failed to list indexes before promotion in {region}: {e}"
            logger.warning(message)
            summary.errors.append(message)
            return False

        current = next((index for index in indexes if index.region == region), None)
        if current is None or not current.arn:
            message = f"No index found in {region} to promote to aggregator"
            logger.warning(message)
            summary.errors.append(message)
            return False

        if current.is_aggregator:
            logger.info(f"Index in {region} is already the aggregator")
            return True

        try:
            logger.info("Promoting index to aggregator...")
            explorer.update_index_type(current.arn, IndexType.AGGREGATOR)
        except ResourceExplorerError as e:
            if e.kind is ErrorKind.COOLDOWN_RESTRICTED:
                message = f"Skipped aggregator promotion in {region}: cooldown period in effect ({e})"
            elif e.kind is ErrorKind.QUOTA_EXCEEDED:
                message = f"Skipped aggregator promotion in {region}: service quota exceeded ({e})"
            else:
                raise IndexTopologyError(
                    f"Failed to promote index in {region} to aggregator: {e}"
                ) from e
            logger.warning(message)
            summary.errors.append(message)
            return False

        logger.info("Successfully promoted index to aggregator")
        return True

    def ensure_default_view(self, region: str) -> ViewDescriptor:
        """Create the all-resources view in region and make it the default.

        Returns:
            ViewDescriptor with status 'created' or 'already exists'

        Raises:
            IndexTopologyError: On failures other than pre-existence
        """
        explorer = self._explorer(region)

        try:
            logger.info("Creating default view...")
            view_arn = explorer.create_view(self.view_name, filter_string='')
        except ResourceExplorerError as e:
            if e.is_already_exists:
                logger.info("View already exists")
                return ViewDescriptor(self.view_name, region, status=VIEW_ALREADY_EXISTS)
            raise IndexTopologyError(f"Failed to create default view in {region}: {e}") from e

        try:
            logger.info("Setting as default view...")
            explorer.associate_default_view(view_arn)
        except ResourceExplorerError as e:
            if e.is_already_exists:
                logger.info("Default view association already exists")
                return ViewDescriptor(self.view_name, region, view_arn, VIEW_ALREADY_EXISTS)
            raise IndexTopologyError(f"Failed to associate default view in {region}: {e}") from e

        logger.info("Successfully set default view")
        return ViewDescriptor(self.view_name, region, view_arn, VIEW_CREATED)

    def ensure_remaining_indexes(self, regions: List[str],
                                 summary: RunSummary) -> List[str]:
        """Ensure a regional index in every region except the home region.

        A failure in one region is recorded and never stops the pass.

        Returns:
            Regions visited, in order
        """
        logger.info("Creating indexes in other regions...")
        visited = []
        for region in regions:
            if region == self.home_region:
                continue
            visited.append(region)
            self.ensure_regional_index(region, summary)
        return visited

    def ensure_regional_index(self, region: str, summary: RunSummary) -> None:
        """Ensure an index exists in one non-home region, recording failures."""
        logger.info(f"Processing region {region}")
        explorer = self._explorer(region)

        try:
            index = explorer.get_index()
            if index.is_present:
                logger.info(f"Index already exists in {region}")
                summary.add_deployed(region)
                return
        except ResourceExplorerError as e:
            if not e.is_not_found:
                message = f"Error checking index in {region}: {e}"
                logger.warning(message)
                summary.errors.append(message)
                return

        try:
            explorer.create_index()
        except ResourceExplorerError as e:
            message = f"Error creating index in {region}: {e}"
            logger.warning(message)
            summary.errors.append(message)
            return

        summary.add_deployed(region)
