"""AWS Resource Explorer multi-account setup - Main Package.

This package provisions and tears down the Resource Explorer index
topology (regional indexes, one aggregator, one default view) across
the member accounts of an AWS Organization.
"""

__version__ = "1.0.0"
__author__ = "P0 Security Platform Team"
