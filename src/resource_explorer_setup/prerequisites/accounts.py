"""Member account discovery through AWS Organizations.

This module lists the accounts of the organization and selects the
ACTIVE member accounts that Resource Explorer setup should manage.
"""

from typing import List, Optional
import logging
from botocore.exceptions import ClientError

from ..core.aws_client import AWSClientManager
from ..indexing.models import Account


logger = logging.getLogger(__name__)


class AccountDiscoveryError(Exception):
    """Raised when the organization's accounts cannot be listed."""
    pass


class AccountDiscoverer:
    """Discovers ACTIVE member accounts of the organization.

    Discovery is all-or-nothing: a failure on any page aborts it, since
    callers rely on the list being complete.
    """

    def __init__(self, aws_client: AWSClientManager, root_account_id: str = '',
                 region: Optional[str] = None) -> None:
        """Initialize account discoverer.

        Args:
            aws_client: Management account client manager
            root_account_id: Management account id, excluded from results
            region: Region for the Organizations client
        """
        self.aws_client = aws_client
        self.root_account_id = root_account_id
        self.region = region
        self._org_client = None

    def _get_client(self):
        """Get Organizations client with caching.

        Returns:
            Configured Organizations client
        """
        if self._org_client is None:
            self._org_client = self.aws_client.get_client(
                'organizations',
                self.region or self.aws_client.get_current_region()
            )
        return self._org_client

    def list_accounts(self) -> List[Account]:
        """List every account in the organization.

        Returns:
            List of Account across all pages

        Raises:
            AccountDiscoveryError: When any page cannot be fetched
        """
        accounts = []
        try:
            paginator = self._get_client().get_paginator('list_accounts')
            for page in paginator.paginate():
                for entry in page.get('Accounts', []):
                    accounts.append(Account(
                        id=entry['Id'],
                        status=entry.get('Status', ''),
                        is_root=entry['Id'] == self.root_account_id,
                    ))
        except ClientError as e:
            raise AccountDiscoveryError(f"Failed to list organization accounts: {e}") from e

        return accounts

    def discover(self) -> List[str]:
        """Get the ids of ACTIVE member accounts.

        Returns:
            Account ids in listing order, root account excluded

        Raises:
            AccountDiscoveryError: When the accounts cannot be listed
        """
        accounts = self.list_accounts()
        account_ids = [
            account.id for account in accounts
            if account.is_active and not account.is_root
        ]
        logger.info(
            f"Discovered {len(account_ids)} active member accounts "
            f"out of {len(accounts)} in the organization"
        )
        return account_ids
