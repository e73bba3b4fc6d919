"""Centralized AWS client management with session handling.

This module provides a centralized way to manage AWS clients across
regions and across accounts. A manager wraps one boto3 session; member
account managers are derived from it by assuming a cross-account role.
"""

from typing import Dict, Optional
import boto3
from botocore.exceptions import (
    NoCredentialsError,
    ClientError,
    ProfileNotFound,
)


class AWSClientManager:
    """Centralized AWS client management with session handling.

    This class caches one boto3 client per (service, region) pair for a
    single set of credentials.
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        session: Optional[boto3.Session] = None,
        default_region: Optional[str] = None,
        validate: bool = True,
    ) -> None:
        """Initialize AWS client manager.

        Args:
            profile_name: Optional AWS profile name for credentials
            session: Optional pre-built boto3 session (e.g. from assumed
                     role credentials). Takes precedence over profile_name.
            default_region: Region used when the session has none configured
            validate: Whether to verify credentials with STS on creation

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        self._session: Optional[boto3.Session] = session
        self._clients: Dict[str, boto3.client] = {}
        self._profile_name = profile_name
        self._default_region = default_region or "us-east-1"
        if validate:
            self._validate_credentials()

    def _validate_credentials(self) -> None:
        """Validate AWS credentials are available and working.

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        try:
            session = self._get_session()
            sts_client = session.client(
                "sts", region_name=self.get_current_region()
            )
            sts_client.get_caller_identity()
        except NoCredentialsError:
            raise NoCredentialsError()
        except ProfileNotFound:
            raise ProfileNotFound(profile=self._profile_name)
        except ClientError as e:
            # Invalid or expired credentials
            if e.response["Error"]["Code"] in ("InvalidClientTokenId", "ExpiredToken"):
                raise NoCredentialsError() from e
            raise

    def _get_session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(profile_name=self._profile_name)
            else:
                self._session = boto3.Session()
        return self._session

    def get_client(self, service_name: str, region_name: str) -> boto3.client:
        """Get AWS service client for specified region.

        Args:
            service_name: AWS service name (e.g., 'resource-explorer-2', 'iam')
            region_name: AWS region name (e.g., 'us-west-2')

        Returns:
            Configured boto3 client for the service and region
        """
        client_key = f"{service_name}_{region_name}"

        if client_key not in self._clients:
            session = self._get_session()
            self._clients[client_key] = session.client(
                service_name, region_name=region_name
            )

        return self._clients[client_key]

    def get_current_region(self) -> str:
        """Get current AWS region from session.

        Returns:
            Current AWS region name
        """
        session = self._get_session()
        return session.region_name or self._default_region

    def get_account_id(self) -> str:
        """Get current AWS account ID.

        Returns:
            Current AWS account ID

        Raises:
            ClientError: When unable to get account information
        """
        sts_client = self.get_client("sts", self.get_current_region())
        response = sts_client.get_caller_identity()
        return response["Account"]

    def assume_role(self, role_arn: str, session_name: str) -> "AWSClientManager":
        """Assume an IAM role and return a manager bound to its credentials.

        Args:
            role_arn: ARN of the role to assume
            session_name: Role session name recorded in CloudTrail

        Returns:
            New AWSClientManager using the temporary credentials

        Raises:
            ClientError: When the role cannot be assumed
        """
        sts_client = self.get_client("sts", self.get_current_region())
        response = sts_client.assume_role(
            RoleArn=role_arn,
            RoleSessionName=session_name,
        )
        credentials = response["Credentials"]

        session = boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.get_current_region(),
        )
        return AWSClientManager(
            session=session,
            default_region=self._default_region,
            validate=False,
        )
