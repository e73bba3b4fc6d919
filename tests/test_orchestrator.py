"""Unit tests for multi-account orchestration."""

import logging
import pytest
from unittest.mock import Mock, patch

from resource_explorer_setup.core.aws_client import AWSClientManager
from resource_explorer_setup.core.config import Configuration
from resource_explorer_setup.indexing.models import RunSummary, TeardownSummary
from resource_explorer_setup.indexing.topology import IndexTopologyError
from resource_explorer_setup.orchestrator import (
    AccountProcessingError,
    InvocationError,
    InvocationRequest,
    ResourceExplorerOrchestrator,
)
from resource_explorer_setup.prerequisites.iam_roles import AccessProvisioningError


ROOT_ACCOUNT_ID = '999999999999'
REGIONS = ['us-east-1', 'us-west-2']


@pytest.fixture
def mock_config():
    config = Mock(spec=Configuration)
    config.get_home_region.return_value = 'us-west-2'
    config.get_control_region.return_value = 'us-east-1'
    config.get_root_account_id.return_value = ROOT_ACCOUNT_ID
    config.get_view_name.return_value = 'all-resources-p0'
    config.get_skip_aggregator.return_value = False
    config.get_skip_default_view.return_value = False
    config.get_member_accounts.return_value = None
    return config


@pytest.fixture
def mock_aws_client():
    return Mock(spec=AWSClientManager)


@pytest.fixture
def collaborators():
    """Patch the orchestrator's collaborators."""
    with patch('resource_explorer_setup.orchestrator.AccountDiscoverer') as discoverer, \
            patch('resource_explorer_setup.orchestrator.RegionResolver') as resolver, \
            patch('resource_explorer_setup.orchestrator.AccessProvisioner') as provisioner, \
            patch('resource_explorer_setup.orchestrator.IndexTopologyReconciler') as topology, \
            patch('resource_explorer_setup.orchestrator.TeardownReconciler') as teardown:
        discoverer.return_value.discover.return_value = ['111111111111', '222222222222']
        resolver.return_value.resolve.return_value = REGIONS
        topology.return_value.reconcile.side_effect = (
            lambda account_id, regions, **kwargs: RunSummary(account_id, list(regions))
        )
        teardown.return_value.teardown.side_effect = (
            lambda account_id, regions: TeardownSummary(account_id, list(regions))
        )
        yield Mock(
            discoverer=discoverer.return_value,
            resolver=resolver.return_value,
            provisioner=provisioner.return_value,
            topology_class=topology,
            topology=topology.return_value,
            teardown_class=teardown,
            teardown=teardown.return_value,
        )


@pytest.fixture
def orchestrator(mock_config, mock_aws_client, collaborators):
    return ResourceExplorerOrchestrator(mock_config, mock_aws_client)


class TestInvocationRequest:
    """Test invocation payload parsing."""

    def test_defaults(self, mock_config):
        request = InvocationRequest.from_event(None, mock_config)

        assert request.action == 'setup'
        assert request.accounts is None
        assert request.skip_aggregator is False
        assert request.skip_default_view is False

    def test_unknown_action_defaults_to_setup(self, mock_config):
        assert InvocationRequest.from_event({'action': 'explode'}, mock_config).action == 'setup'

    def test_action_is_case_insensitive(self, mock_config):
        assert InvocationRequest.from_event({'action': 'DESTROY'}, mock_config).action == 'destroy'

    def test_accounts_as_json_string(self, mock_config):
        request = InvocationRequest.from_event(
            {'accounts': '["111111111111", "222222222222"]'}, mock_config
        )

        assert request.accounts == ['111111111111', '222222222222']

    def test_numeric_account_ids_are_padded(self, mock_config):
        request = InvocationRequest.from_event({'accounts': [12345678901]}, mock_config)

        assert request.accounts == ['012345678901']

    @pytest.mark.parametrize('accounts', ['not json', {'id': '1'}, [True], [None], [''], '"x"'])
    def test_malformed_accounts(self, mock_config, accounts):
        with pytest.raises(InvocationError):
            InvocationRequest.from_event({'accounts': accounts}, mock_config)

    def test_payload_must_be_object(self, mock_config):
        with pytest.raises(InvocationError):
            InvocationRequest.from_event(['setup'], mock_config)

    @pytest.mark.parametrize('value,expected', [
        (True, True), (False, False), ('true', True), ('TRUE', True),
        ('yes', True), ('false', False), ('0', False), (1, True),
    ])
    def test_flags(self, mock_config, value, expected):
        request = InvocationRequest.from_event(
            {'skipAggregator': value, 'skipDefaultView': value}, mock_config
        )

        assert request.skip_aggregator is expected
        assert request.skip_default_view is expected

    def test_flags_fall_back_to_configuration(self, mock_config):
        mock_config.get_skip_aggregator.return_value = True

        request = InvocationRequest.from_event({}, mock_config)

        assert request.skip_aggregator is True
        assert request.skip_default_view is False


class TestDispatch:
    """Test action dispatch."""

    def test_discover(self, orchestrator, collaborators):
        result = orchestrator.handle({'action': 'discover'})

        assert result == {'accounts': ['111111111111', '222222222222']}
        collaborators.resolver.resolve.assert_not_called()
        collaborators.provisioner.provision.assert_not_called()

    def test_default_action_is_setup(self, orchestrator, collaborators):
        result = orchestrator.handle({'accounts': ['111111111111']})

        assert result['message'] == 'Setup completed for 1 accounts'
        collaborators.topology.reconcile.assert_called_once_with(
            '111111111111', REGIONS, skip_aggregator=False, skip_default_view=False
        )

    def test_flags_are_passed_through(self, orchestrator, collaborators):
        orchestrator.handle({
            'action': 'setup', 'accounts': ['111111111111'],
            'skipAggregator': 'true', 'skipDefaultView': True,
        })

        collaborators.topology.reconcile.assert_called_once_with(
            '111111111111', REGIONS, skip_aggregator=True, skip_default_view=True
        )

    def test_destroy(self, orchestrator, collaborators):
        result = orchestrator.handle({'action': 'destroy', 'accounts': ['111111111111']})

        assert result['statusCode'] == 200
        assert result['body']['message'] == 'Teardown completed for 1 accounts'
        assert result['body']['processedAccounts'][0]['accountId'] == '111111111111'
        collaborators.provisioner.assume_account_access.assert_called_once_with('111111111111')
        collaborators.provisioner.provision.assert_not_called()


class TestSetup:
    """Test the setup action."""

    def test_setup_discovers_accounts_when_none_given(self, orchestrator, collaborators):
        result = orchestrator.setup()

        assert [r['accountId'] for r in result['results']] == ['111111111111', '222222222222']
        assert collaborators.provisioner.provision.call_count == 2

    def test_configured_member_accounts(self, orchestrator, collaborators, mock_config):
        mock_config.get_member_accounts.return_value = ['333333333333']

        result = orchestrator.setup()

        assert [r['accountId'] for r in result['results']] == ['333333333333']
        collaborators.discoverer.discover.assert_not_called()

    def test_explicit_empty_list_processes_nothing(self, orchestrator, collaborators):
        result = orchestrator.setup([])

        assert result['results'] == []
        collaborators.discoverer.discover.assert_not_called()

    def test_regions_resolved_once(self, orchestrator, collaborators):
        orchestrator.setup(['111111111111', '222222222222'])

        collaborators.resolver.resolve.assert_called_once_with()

    def test_member_accounts_are_provisioned(self, orchestrator, collaborators):
        member_client = Mock(spec=AWSClientManager)
        collaborators.provisioner.provision.return_value = member_client

        orchestrator.setup(['111111111111'])

        collaborators.provisioner.provision.assert_called_once_with('111111111111')
        collaborators.topology_class.assert_called_once_with(
            member_client, 'us-west-2', view_name='all-resources-p0'
        )

    def test_root_account_uses_own_credentials(self, orchestrator, collaborators, mock_aws_client):
        orchestrator.setup([ROOT_ACCOUNT_ID])

        collaborators.provisioner.provision.assert_not_called()
        collaborators.topology_class.assert_called_once_with(
            mock_aws_client, 'us-west-2', view_name='all-resources-p0'
        )

    def test_fatal_error_aborts_batch(self, orchestrator, collaborators):
        collaborators.topology.reconcile.side_effect = [
            RunSummary('111111111111', REGIONS),
            IndexTopologyError('Failed to create index in home region us-west-2'),
        ]

        with pytest.raises(AccountProcessingError) as exc_info:
            orchestrator.setup(['111111111111', '222222222222', '333333333333'])

        error = exc_info.value
        assert error.account_id == '222222222222'
        assert [r['accountId'] for r in error.results] == ['111111111111', '222222222222']
        assert error.results[1]['status'] == 'failed'
        assert 'home region' in error.results[1]['error']
        assert isinstance(error.__cause__, IndexTopologyError)
        assert collaborators.topology.reconcile.call_count == 2

    def test_abort_logs_partial_results(self, orchestrator, collaborators, caplog):
        caplog.set_level(logging.INFO, logger='resource_explorer_setup.orchestrator')
        collaborators.topology.reconcile.side_effect = [
            RunSummary('111111111111', REGIONS),
            IndexTopologyError('Failed to create index in home region us-west-2'),
        ]

        with pytest.raises(AccountProcessingError):
            orchestrator.setup(['111111111111', '222222222222'])

        partial = [r for r in caplog.records if 'partial results' in r.getMessage()]
        assert len(partial) == 1
        assert partial[0].levelno == logging.INFO
        assert 'after 2 accounts' in partial[0].getMessage()
        assert '"accountId": "111111111111"' in partial[0].getMessage()
        assert '"status": "failed"' in partial[0].getMessage()

    def test_provisioning_failure_aborts_batch(self, orchestrator, collaborators):
        collaborators.provisioner.provision.side_effect = AccessProvisioningError('denied')

        with pytest.raises(AccountProcessingError) as exc_info:
            orchestrator.setup(['111111111111'])

        assert exc_info.value.results == [
            {'accountId': '111111111111', 'status': 'failed', 'error': 'denied'}
        ]
        collaborators.topology.reconcile.assert_not_called()


class TestDestroy:
    """Test the destroy action."""

    def test_destroy_requires_accounts(self, orchestrator, collaborators):
        with pytest.raises(InvocationError):
            orchestrator.destroy(None)

        collaborators.discoverer.discover.assert_not_called()

    def test_destroy_uses_configured_member_accounts(self, orchestrator, collaborators, mock_config):
        mock_config.get_member_accounts.return_value = ['333333333333']

        result = orchestrator.destroy(None)

        assert result['body']['processedAccounts'][0]['accountId'] == '333333333333'

    def test_root_account_is_not_assumed(self, orchestrator, collaborators, mock_aws_client):
        orchestrator.destroy([ROOT_ACCOUNT_ID])

        collaborators.provisioner.assume_account_access.assert_not_called()
        collaborators.teardown_class.assert_called_once_with(mock_aws_client, 'us-west-2')

    def test_access_failure_aborts_batch(self, orchestrator, collaborators):
        collaborators.provisioner.assume_account_access.side_effect = [
            Mock(spec=AWSClientManager),
            AccessProvisioningError('denied'),
        ]

        with pytest.raises(AccountProcessingError) as exc_info:
            orchestrator.destroy(['111111111111', '222222222222'])

        assert [r['accountId'] for r in exc_info.value.results] == [
            '111111111111', '222222222222'
        ]
        assert exc_info.value.results[-1]['status'] == 'failed'
