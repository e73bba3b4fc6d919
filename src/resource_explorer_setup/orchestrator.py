"""Multi-account orchestration of Resource Explorer setup and teardown.

This module provides the ResourceExplorerOrchestrator, which selects one
of the discover, setup and destroy actions from an invocation payload
and applies it to a batch of accounts, one account at a time.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import json
import logging

from .core.aws_client import AWSClientManager
from .core.config import Configuration
from .indexing.models import failure_record
from .indexing.teardown import TeardownReconciler
from .indexing.topology import IndexTopologyReconciler
from .prerequisites.accounts import AccountDiscoverer
from .prerequisites.iam_roles import AccessProvisioner
from .prerequisites.regions import RegionResolver


logger = logging.getLogger(__name__)

ACTION_DISCOVER = 'discover'
ACTION_SETUP = 'setup'
ACTION_DESTROY = 'destroy'
ACTIONS = (ACTION_DISCOVER, ACTION_SETUP, ACTION_DESTROY)

TRUE_STRINGS = ('true', '1', 'yes', 'on')


class InvocationError(Exception):
    """Raised when an invocation payload is malformed."""
    pass


class AccountProcessingError(Exception):
    """Raised when an account fails fatally and the batch is aborted.

    Attributes:
        account_id: Account that failed
        results: Result entries recorded before the batch was aborted,
                 ending with the failure record of account_id
    """

    def __init__(self, message: str, account_id: str,
                 results: List[Dict[str, Any]]) -> None:
        super().__init__(message)
        self.account_id = account_id
        self.results = results


@dataclass
class InvocationRequest:
    """Parsed invocation payload."""

    action: str = ACTION_SETUP
    accounts: Optional[List[str]] = None
    skip_aggregator: bool = False
    skip_default_view: bool = False

    @classmethod
    def from_event(cls, event: Optional[Dict[str, Any]],
                   config: Configuration) -> 'InvocationRequest':
        """Parse an invocation payload.

        An absent or unknown action selects setup. Flags absent from the
        payload fall back to the configured defaults.

        Raises:
            InvocationError: When accounts or flags are malformed
        """
        event = event or {}
        if not isinstance(event, dict):
            raise InvocationError("Invocation payload must be an object")

        action = str(event.get('action') or ACTION_SETUP).lower()
        if action not in ACTIONS:
            logger.warning(f"Unknown action '{action}', defaulting to {ACTION_SETUP}")
            action = ACTION_SETUP

        return cls(
            action=action,
            accounts=_parse_accounts(event.get('accounts')),
            skip_aggregator=_parse_flag(event, 'skipAggregator', config.get_skip_aggregator()),
            skip_default_view=_parse_flag(event, 'skipDefaultView', config.get_skip_default_view()),
        )


class ResourceExplorerOrchestrator:
    """Applies discover, setup or destroy across a batch of accounts.

    Accounts are processed sequentially. A fatal error in one account
    is recorded and then aborts the rest of the batch.
    """

    def __init__(self, config: Configuration, aws_client: AWSClientManager) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration instance
            aws_client: Management account client manager
        """
        self.config = config
        self.aws_client = aws_client
        self.home_region = config.get_home_region()
        self.root_account_id = config.get_root_account_id()

        control_region = config.get_control_region()
        self.account_discoverer = AccountDiscoverer(
            aws_client, self.root_account_id, region=control_region
        )
        self.region_resolver = RegionResolver(
            aws_client, self.home_region, region=control_region
        )
        self.access_provisioner = AccessProvisioner(config, aws_client)

    def handle(self, event: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Dispatch an invocation payload to the selected action.

        Args:
            event: Invocation payload

        Returns:
            Result of the selected action
        """
        request = InvocationRequest.from_event(event, self.config)
        logger.info(f"Action: {request.action}")

        if request.action == ACTION_DISCOVER:
            return self.discover()
        if request.action == ACTION_DESTROY:
            return self.destroy(request.accounts)
        return self.setup(
            request.accounts,
            skip_aggregator=request.skip_aggregator,
            skip_default_view=request.skip_default_view,
        )

    def discover(self) -> Dict[str, Any]:
        """List ACTIVE member accounts without changing anything.

        Returns:
            {'accounts': [account ids]}
        """
        return {'accounts': self.account_discoverer.discover()}

    def setup(self, accounts: Optional[List[str]] = None,
              skip_aggregator: bool = False,
              skip_default_view: bool = False) -> Dict[str, Any]:
        """Provision access and converge every account.

        Args:
            accounts: Account ids to process; when None, the configured
                      member accounts or else the discovered ones
            skip_aggregator: Skip aggregator discovery and promotion
            skip_default_view: Skip default view creation

        Returns:
            {'message': str, 'results': [RunSummary dicts]}

        Raises:
            AccountProcessingError: When an account fails fatally
        """
        logger.info('Will skip aggregator setup' if skip_aggregator else 'Will setup aggregator')
        logger.info('Will skip default view setup' if skip_default_view else 'Will setup default view')

        if accounts is None:
            accounts = self.config.get_member_accounts()
        if accounts is None:
            logger.info("No accounts supplied, using discovered member accounts")
            accounts = self.account_discoverer.discover()

        regions = self.region_resolver.resolve()
        logger.info(f"Processing member accounts: {accounts}")

        results: List[Dict[str, Any]] = []
        for account_id in accounts:
            logger.info(f"Processing account {account_id}")
            try:
                account_client = self._account_client(account_id, provision=True)
                reconciler = IndexTopologyReconciler(
                    account_client, self.home_region, view_name=self.config.get_view_name()
                )
                summary = reconciler.reconcile(
                    account_id, regions,
                    skip_aggregator=skip_aggregator,
                    skip_default_view=skip_default_view,
                )
                results.append(summary.to_dict())
            except Exception as e:
                self._abort(account_id, e, results)
            logger.info(f"Successfully processed account {account_id}")

        return {
            'message': f"Setup completed for {len(results)} accounts",
            'results': results,
        }

    def destroy(self, accounts: Optional[List[str]]) -> Dict[str, Any]:
        """Remove the Resource Explorer topology from every account.

        Args:
            accounts: Account ids to process; when None, the configured
                      member accounts

        Returns:
            {'statusCode': 200, 'body': {'message', 'processedAccounts'}}

        Raises:
            InvocationError: When no account list is supplied or configured
            AccountProcessingError: When an account fails fatally
        """
        if accounts is None:
            accounts = self.config.get_member_accounts()
        if accounts is None:
            raise InvocationError("Destroy requires an explicit 'accounts' list")

        regions = self.region_resolver.resolve()
        logger.info(f"Destroying Resource Explorer in accounts: {accounts}")

        processed: List[Dict[str, Any]] = []
        for account_id in accounts:
            logger.info(f"Processing account {account_id}")
            try:
                account_client = self._account_client(account_id, provision=False)
                reconciler = TeardownReconciler(account_client, self.home_region)
                summary = reconciler.teardown(account_id, regions)
                processed.append(summary.to_dict())
            except Exception as e:
                self._abort(account_id, e, processed)

        return {
            'statusCode': 200,
            'body': {
                'message': f"Teardown completed for {len(processed)} accounts",
                'processedAccounts': processed,
            },
        }

    def _account_client(self, account_id: str, provision: bool) -> AWSClientManager:
        """Get a client manager for an account.

        The root account is reconciled with the management credentials
        and never provisioned.
        """
        if account_id == self.root_account_id:
            logger.info(f"Account {account_id} is the management account, using own credentials")
            return self.aws_client
        if provision:
            return self.access_provisioner.provision(account_id)
        return self.access_provisioner.assume_account_access(account_id)

    def _abort(self, account_id: str, error: Exception,
               results: List[Dict[str, Any]]) -> None:
        results.append(failure_record(account_id, error))
        logger.error(f"Failed to process account {account_id}: {error}")
        logger.info(
            f"Aborting batch after {len(results)} accounts, partial results: "
            f"{json.dumps(results)}"
        )
        raise AccountProcessingError(
            f"Failed to process account {account_id}: {error}",
            account_id=account_id,
            results=results,
        ) from error


def _parse_accounts(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise InvocationError(f"'accounts' is not a valid JSON list: {e}") from e
    if not isinstance(value, list):
        raise InvocationError("'accounts' must be a list of account ids")

    accounts = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise InvocationError(f"Invalid account id: {item!r}")
        account_id = str(item).zfill(12) if isinstance(item, int) else item.strip()
        if not account_id:
            raise InvocationError("Account ids must not be empty")
        accounts.append(account_id)
    return accounts


def _parse_flag(event: Dict[str, Any], key: str, default: bool) -> bool:
    value = event.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)
