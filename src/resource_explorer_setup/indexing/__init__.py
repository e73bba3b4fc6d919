"""Resource Explorer index topology reconciliation.

This package wraps the resource-explorer-2 API and contains the setup
and teardown state machines that converge a single account.
"""
