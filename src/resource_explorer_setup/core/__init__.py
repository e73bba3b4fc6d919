"""Core components for Resource Explorer setup.

This module contains the foundational components including AWS client
management, configuration handling and remote error classification.
"""
