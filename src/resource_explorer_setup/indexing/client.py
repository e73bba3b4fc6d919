"""Resource Explorer API wrapper for a single account and region.

Every method translates botocore errors into ResourceExplorerError
carrying a classified ErrorKind, so callers can tell an absent index
from a failed call without inspecting error strings. Transport failures
such as an unreachable regional endpoint are classified as OTHER.
"""

from typing import Any, Callable, Dict, List
import logging
from botocore.exceptions import BotoCoreError, ClientError

from ..core.aws_client import AWSClientManager
from ..core.errors import RemoteServiceError
from .models import IndexDescriptor, IndexType


logger = logging.getLogger(__name__)

SERVICE_NAME = 'resource-explorer-2'


class ResourceExplorerError(RemoteServiceError):
    """Raised when a Resource Explorer API call fails."""
    pass


class ResourceExplorerClient:
    """Typed access to the resource-explorer-2 API in one region."""

    def __init__(self, aws_client: AWSClientManager, region: str) -> None:
        """Initialize Resource Explorer client.

        Args:
            aws_client: Client manager holding the target account's credentials
            region: Region all calls are made in
        """
        self.aws_client = aws_client
        self.region = region
        self._client = None

    def _get_client(self):
        """Get resource-explorer-2 client with caching.

        Returns:
            Configured boto3 client for this region
        """
        if self._client is None:
            self._client = self.aws_client.get_client(SERVICE_NAME, self.region)
        return self._client

    def _call(self, operation: str, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except ClientError as e:
            raise ResourceExplorerError.from_client_error(e, operation, self.region) from e
        except BotoCoreError as e:
            # Endpoint, timeout and connection failures carry no service code
            raise ResourceExplorerError(
                f"{operation} failed in {self.region}: {e}",
                operation=operation,
                region=self.region,
            ) from e

    def get_index(self) -> IndexDescriptor:
        """Get the index in this region.

        Returns:
            IndexDescriptor; its state is None when the service returned
            no index details

        Raises:
            ResourceExplorerError: NOT_FOUND when the region has no index
        """
        response = self._call('GetIndex', lambda: self._get_client().get_index())
        return IndexDescriptor.from_response(response, self.region)

    def create_index(self) -> IndexDescriptor:
        """Create a local index in this region.

        Returns:
            IndexDescriptor of the new index (usually in CREATING state)
        """
        response = self._call('CreateIndex', lambda: self._get_client().create_index())
        logger.info(f"Created index in {self.region}: {response.get('Arn')}")
        return IndexDescriptor.from_response(response, self.region)

    def list_indexes(self) -> List[IndexDescriptor]:
        """List every index of the account, across all regions.

        Returns:
            List of IndexDescriptor across all pages
        """
        def fetch() -> List[Dict[str, Any]]:
            paginator = self._get_client().get_paginator('list_indexes')
            entries = []
            for page in paginator.paginate():
                entries.extend(page.get('Indexes', []))
            return entries

        entries = self._call('ListIndexes', fetch)
        return [IndexDescriptor.from_response(entry, self.region) for entry in entries]

    def update_index_type(self, arn: str, index_type: IndexType) -> IndexDescriptor:
        """Change the type of an index (e.g. promote to AGGREGATOR).

        Args:
            arn: ARN of the index to update
            index_type: Target index type

        Returns:
            IndexDescriptor reflecting the update response
        """
        response = self._call(
            'UpdateIndexType',
            lambda: self._get_client().update_index_type(Arn=arn, Type=index_type.value),
        )
        return IndexDescriptor.from_response(response, self.region)

    def delete_index(self, arn: str) -> None:
        """Delete the index with the given ARN."""
        self._call('DeleteIndex', lambda: self._get_client().delete_index(Arn=arn))

    def create_view(self, view_name: str, filter_string: str = '') -> str:
        """Create a view in this region.

        Args:
            view_name: Name of the view
            filter_string: Resource Explorer filter; empty matches all resources

        Returns:
            ARN of the created view
        """
        response = self._call(
            'CreateView',
            lambda: self._get_client().create_view(
                ViewName=view_name,
                Filters={'FilterString': filter_string},
            ),
        )
        return response['View']['ViewArn']

    def associate_default_view(self, view_arn: str) -> None:
        """Make the given view the default view."""
        self._call(
            'AssociateDefaultView',
            lambda: self._get_client().associate_default_view(ViewArn=view_arn),
        )

    def disassociate_default_view(self) -> None:
        """Remove the default view association in this region."""
        self._call(
            'DisassociateDefaultView',
            lambda: self._get_client().disassociate_default_view(),
        )

    def list_views(self) -> List[str]:
        """List the ARNs of all views in this region."""
        def fetch() -> List[str]:
            paginator = self._get_client().get_paginator('list_views')
            arns = []
            for page in paginator.paginate():
                arns.extend(page.get('Views', []))
            return arns

        return self._call('ListViews', fetch)

    def delete_view(self, view_arn: str) -> None:
        """Delete the view with the given ARN."""
        self._call('DeleteView', lambda: self._get_client().delete_view(ViewArn=view_arn))
