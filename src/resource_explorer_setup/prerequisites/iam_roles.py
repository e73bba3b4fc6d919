"""Cross-account access and lister role provisioning.

This module assumes the organization access role in a member account
and upserts the federated resource lister role together with its
inline policy.
"""

from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging
from botocore.exceptions import ClientError

from ..core.aws_client import AWSClientManager
from ..core.config import Configuration
from ..core.errors import ErrorKind, classify_client_error


logger = logging.getLogger(__name__)

ACCOUNT_ID_TOKEN = '${account_id}'


class AccessProvisioningError(Exception):
    """Raised when access to a member account cannot be provisioned."""
    pass


def render_policy(template: str, account_id: str) -> str:
    """Substitute the account id into a policy document template."""
    return template.replace(ACCOUNT_ID_TOKEN, account_id)


class AccessProvisioner:
    """Provisions cross-account access and the lister role.

    The lister role is trusted for web identity federation from the
    configured provider, restricted to the configured audience.
    """

    def __init__(self, config: Configuration, aws_client: AWSClientManager) -> None:
        """Initialize access provisioner.

        Args:
            config: Configuration instance
            aws_client: Management account client manager
        """
        self.config = config
        self.aws_client = aws_client
        self._policy_template: Optional[str] = None

    def assume_account_access(self, account_id: str) -> AWSClientManager:
        """Assume the organization access role in a member account.

        Args:
            account_id: Member account id

        Returns:
            Client manager bound to the member account

        Raises:
            AccessProvisioningError: When the role cannot be assumed
        """
        if not account_id:
            raise AccessProvisioningError("Account ID is undefined")

        role_arn = f"arn:aws:iam::{account_id}:role/{self.config.get_access_role_name()}"
        logger.info(f"Getting credentials for account {account_id}")
        try:
            return self.aws_client.assume_role(role_arn, self.config.get_session_name())
        except ClientError as e:
            raise AccessProvisioningError(
                f"Failed to assume {role_arn}: {e}"
            ) from e

    def provision(self, account_id: str) -> AWSClientManager:
        """Assume access to an account and ensure its lister role.

        Args:
            account_id: Member account id

        Returns:
            Client manager bound to the member account

        Raises:
            AccessProvisioningError: When any step fails
        """
        account_client = self.assume_account_access(account_id)
        self.ensure_lister_role(account_id, account_client)
        return account_client

    def ensure_lister_role(self, account_id: str, account_client: AWSClientManager) -> None:
        """Create the lister role if missing and rewrite its inline policy.

        The policy is written on every call so template changes reach
        roles created by earlier runs.

        Args:
            account_id: Member account id
            account_client: Client manager bound to the member account

        Raises:
            AccessProvisioningError: On any failure other than the role being absent
        """
        role_name = self.config.get_lister_role_name()
        iam_client = account_client.get_client('iam', self.config.get_control_region())
        logger.info(f"Setting up {role_name} in account {account_id}")

        if not self.role_exists(iam_client, role_name):
            self.create_role(iam_client, role_name)
        else:
            logger.info("Role already exists, will update policy...")

        policy = render_policy(self.load_policy_template(), account_id)
        try:
            logger.info("Updating role policy...")
            iam_client.put_role_policy(
                RoleName=role_name,
                PolicyName=self.config.get_lister_policy_name(),
                PolicyDocument=policy,
            )
        except ClientError as e:
            raise AccessProvisioningError(
                f"Failed to update policy of {role_name} in {account_id}: {e}"
            ) from e

        logger.info("Successfully set up role and policy")

    def role_exists(self, iam_client, role_name: str) -> bool:
        """Check if IAM role exists.

        Returns:
            True if role exists, False if the service reports it absent

        Raises:
            AccessProvisioningError: When the lookup fails for another reason
        """
        try:
            logger.info("Checking if role already exists...")
            iam_client.get_role(RoleName=role_name)
            return True
        except ClientError as e:
            if classify_client_error(e) is ErrorKind.NOT_FOUND:
                return False
            raise AccessProvisioningError(f"Failed to check role {role_name}: {e}") from e

    def create_role(self, iam_client, role_name: str) -> Dict[str, Any]:
        """Create the lister role with its federated trust policy.

        Returns:
            Created role details
        """
        audience = self.config.get_federation_audience()
        if not audience:
            raise AccessProvisioningError(
                "Federation audience is not configured; refusing to create "
                f"{role_name} with an unrestricted trust policy"
            )

        logger.info(f"Creating {role_name} role...")
        try:
            response = iam_client.create_role(
                RoleName=role_name,
                AssumeRolePolicyDocument=json.dumps(self.trust_policy(audience)),
                Tags=[
                    {'Key': key, 'Value': value}
                    for key, value in self.config.get_lister_role_tags().items()
                ],
            )
        except ClientError as e:
            raise AccessProvisioningError(f"Failed to create role {role_name}: {e}") from e
        return response['Role']

    def trust_policy(self, audience: str) -> Dict[str, Any]:
        """Build the web identity trust policy for the lister role."""
        provider = self.config.get_federation_provider()
        return {
            'Version': '2012-10-17',
            'Statement': [{
                'Effect': 'Allow',
                'Principal': {'Federated': provider},
                'Action': 'sts:AssumeRoleWithWebIdentity',
                'Condition': {
                    'StringEquals': {f'{provider}:aud': audience}
                },
            }],
        }

    def load_policy_template(self) -> str:
        """Read the inline policy template, caching it for the run.

        Raises:
            AccessProvisioningError: When the template cannot be read
        """
        if self._policy_template is None:
            path = Path(self.config.get_policy_template_path())
            logger.info("Reading policy template...")
            try:
                self._policy_template = path.read_text(encoding='utf-8')
            except IOError as e:
                raise AccessProvisioningError(
                    f"Unable to read policy template {path}: {e}"
                ) from e
        return self._policy_template
