"""AWS Lambda entry point for Resource Explorer setup.

The handler builds the configuration and the management account client
manager, then hands the invocation payload to the orchestrator.
"""

from typing import Any, Dict, Optional
import logging

from .core.aws_client import AWSClientManager
from .core.config import Configuration
from .orchestrator import ResourceExplorerOrchestrator


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Set the root log level, installing a handler outside Lambda.

    The Lambda runtime installs its own root handler, so only the level
    is changed when one is present.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
    numeric_level = logging.getLevelName(level.upper())
    root.setLevel(numeric_level if isinstance(numeric_level, int) else logging.INFO)


def build_orchestrator(config: Configuration,
                       aws_client: Optional[AWSClientManager] = None) -> ResourceExplorerOrchestrator:
    """Create an orchestrator bound to the management account credentials.

    When no root account is configured, the caller's own account is
    used as the root account and reconciled with its own credentials.

    Args:
        config: Configuration instance
        aws_client: Management account client manager; built from the
                    configured profile when None

    Returns:
        Orchestrator ready to handle invocations
    """
    if aws_client is None:
        aws_client = AWSClientManager(
            profile_name=config.get_profile_name(),
            default_region=config.get_control_region(),
        )

    if not config.get_root_account_id():
        account_id = aws_client.get_account_id()
        logger.info(f"No root account configured, using caller account {account_id}")
        config.set("organization.root_account_id", account_id)

    return ResourceExplorerOrchestrator(config, aws_client)


def lambda_handler(event: Optional[Dict[str, Any]], context: Any = None) -> Dict[str, Any]:
    """Handle a discover, setup or destroy invocation.

    Args:
        event: Invocation payload ({'action', 'accounts', 'skipAggregator',
               'skipDefaultView'})
        context: Lambda context (unused)

    Returns:
        Result of the selected action

    Raises:
        Exception: Any fatal error is logged and re-raised so the
                   invocation is reported as failed
    """
    try:
        config = Configuration()
        configure_logging(config.get_log_level())
        orchestrator = build_orchestrator(config)
        return orchestrator.handle(event)
    except Exception as e:
        logger.error(f"Lambda execution error: {e}")
        raise
