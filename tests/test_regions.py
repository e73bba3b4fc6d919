"""Tests for target region resolution."""

import pytest
from unittest.mock import Mock
from botocore.exceptions import ClientError

from resource_explorer_setup.prerequisites.regions import (
    RegionCatalogError,
    RegionResolver,
    resolve_regions,
)
from resource_explorer_setup.core.aws_client import AWSClientManager


HOME_REGION = 'us-west-2'


def _region(name, status):
    return {'RegionName': name, 'RegionOptStatus': status}


class TestResolveRegions:
    """Test the pure region resolution function."""

    def test_keeps_usable_statuses_in_catalog_order(self):
        """Test enabled, enabling and enabled-by-default regions are kept."""
        catalog = [
            _region('af-south-1', 'DISABLED'),
            _region('eu-west-1', 'ENABLED'),
            _region('ap-east-1', 'ENABLING'),
            _region('us-east-1', 'ENABLED_BY_DEFAULT'),
            _region('me-south-1', 'DISABLING'),
            _region('us-west-2', 'ENABLED_BY_DEFAULT'),
        ]

        assert resolve_regions(catalog, HOME_REGION) == [
            'eu-west-1', 'ap-east-1', 'us-east-1', 'us-west-2'
        ]

    def test_adds_missing_home_region(self):
        """Test the home region is appended when absent from the catalog."""
        catalog = [_region('eu-west-1', 'ENABLED')]

        assert resolve_regions(catalog, HOME_REGION) == ['eu-west-1', HOME_REGION]

    def test_adds_disabled_home_region(self):
        """Test the home region is included even when disabled upstream."""
        catalog = [_region('eu-west-1', 'ENABLED'), _region(HOME_REGION, 'DISABLED')]

        assert resolve_regions(catalog, HOME_REGION) == ['eu-west-1', HOME_REGION]

    @pytest.mark.parametrize('catalog', [
        [],
        [_region('af-south-1', 'DISABLED')],
        [{'RegionOptStatus': 'ENABLED'}],
    ])
    def test_never_empty(self, catalog):
        """Test an unusable catalog falls back to the home region alone."""
        assert resolve_regions(catalog, HOME_REGION) == [HOME_REGION]

    def test_duplicates_removed(self):
        """Test a region listed twice is resolved once."""
        catalog = [_region('eu-west-1', 'ENABLED'), _region('eu-west-1', 'ENABLED')]

        assert resolve_regions(catalog, 'eu-west-1') == ['eu-west-1']


class TestRegionResolver:
    """Test RegionResolver class."""

    @pytest.fixture
    def mock_aws_client(self):
        client = Mock(spec=AWSClientManager)
        client.get_current_region.return_value = 'us-east-1'
        return client

    @pytest.fixture
    def mock_account_client(self, mock_aws_client):
        account_client = Mock()
        mock_aws_client.get_client.return_value = account_client
        return account_client

    def test_resolve(self, mock_aws_client, mock_account_client):
        """Test the catalog is fetched across pages and resolved."""
        mock_account_client.get_paginator.return_value.paginate.return_value = [
            {'Regions': [_region('eu-west-1', 'ENABLED')]},
            {'Regions': [_region('us-east-1', 'ENABLED_BY_DEFAULT')]},
        ]

        resolver = RegionResolver(mock_aws_client, HOME_REGION, region='us-east-1')

        assert resolver.resolve() == ['eu-west-1', 'us-east-1', HOME_REGION]
        mock_aws_client.get_client.assert_called_once_with('account', 'us-east-1')
        mock_account_client.get_paginator.assert_called_once_with('list_regions')

    def test_fetch_catalog_failure(self, mock_aws_client, mock_account_client):
        """Test catalog fetch errors are raised."""
        mock_account_client.get_paginator.return_value.paginate.side_effect = ClientError(
            {'Error': {'Code': 'AccessDeniedException', 'Message': 'denied'}}, 'ListRegions'
        )

        resolver = RegionResolver(mock_aws_client, HOME_REGION)

        with pytest.raises(RegionCatalogError, match="Failed to list regions"):
            resolver.resolve()
