"""Best-effort removal of the Resource Explorer topology from one account.

Teardown never raises: every region is attempted, absent resources are
skipped silently and any other failure is logged and recorded.
"""

from typing import Callable, Dict, List
import logging

from ..core.aws_client import AWSClientManager
from .client import ResourceExplorerClient, ResourceExplorerError
from .models import TeardownSummary


logger = logging.getLogger(__name__)


class TeardownReconciler:
    """Removes the default view, views and indexes of a single account."""

    def __init__(self, aws_client: AWSClientManager, home_region: str,
                 client_factory: Callable[[AWSClientManager, str],
                                          ResourceExplorerClient] = ResourceExplorerClient):
        """Initialize the teardown reconciler.

        Args:
            aws_client: Client manager holding the account's credentials
            home_region: Region whose default view association is removed
            client_factory: Builds a Resource Explorer client for a region
        """
        self.aws_client = aws_client
        self.home_region = home_region
        self._client_factory = client_factory
        self._explorers: Dict[str, ResourceExplorerClient] = {}

    def _explorer(self, region: str) -> ResourceExplorerClient:
        if region not in self._explorers:
            self._explorers[region] = self._client_factory(self.aws_client, region)
        return self._explorers[region]

    def teardown(self, account_id: str, regions: List[str]) -> TeardownSummary:
        """Remove views and indexes in every region.

        Args:
            account_id: Account being torn down (for reporting)
            regions: Resolved region list, in processing order

        Returns:
            TeardownSummary listing what was removed and what failed
        """
        summary = TeardownSummary(account_id=account_id, regions=list(regions))
        logger.info(f"Tearing down Resource Explorer in account {account_id}")

        for region in regions:
            logger.info(f"Cleaning up region {region}")
            if region == self.home_region:
                self.disassociate_default_view(region, summary)
            self.delete_views(region, summary)
            self.delete_index(region, summary)

        logger.info(
            f"Account {account_id}: removed {len(summary.deleted_views)} views and "
            f"{len(summary.deleted_indexes)} indexes, {len(summary.errors)} errors"
        )
        return summary

    def _record(self, summary: TeardownSummary, message: str) -> None:
        logger.warning(message)
        summary.errors.append(message)

    def disassociate_default_view(self, region: str, summary: TeardownSummary) -> None:
        try:
            self._explorer(region).disassociate_default_view()
            logger.info(f"Disassociated default view in {region}")
        except ResourceExplorerError as e:
            if not e.is_not_found:
                self._record(summary, f"Failed to disassociate default view in {region}: {e}")

    def delete_views(self, region: str, summary: TeardownSummary) -> None:
        """Delete every view in region, continuing past individual failures."""
        explorer = self._explorer(region)
        try:
            view_arns = explorer.list_views()
        except ResourceExplorerError as e:
            if not e.is_not_found:
                self._record(summary, f"Failed to list views in {region}: {e}")
            return

        for view_arn in view_arns:
            try:
                explorer.delete_view(view_arn)
                summary.deleted_views.append(view_arn)
                logger.info(f"Deleted view {view_arn}")
            except ResourceExplorerError as e:
                if not e.is_not_found:
                    self._record(summary, f"Failed to delete view {view_arn}: {e}")

    def delete_index(self, region: str, summary: TeardownSummary) -> None:
        """Delete the index in region; an absent index is not an error."""
        explorer = self._explorer(region)
        try:
            index = explorer.get_index()
            if not index.arn:
                logger.info(f"No index in {region}")
                return
            explorer.delete_index(index.arn)
        except ResourceExplorerError as e:
            if e.is_not_found:
                logger.info(f"No index in {region}")
            else:
                self._record(summary, f"Failed to delete index in {region}: {e}")
            return

        summary.deleted_indexes.append(region)
        logger.info(f"Deleted index in {region}")
