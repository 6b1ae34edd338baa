"""AWS client utilities for awsrollout."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import (
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
)

from ..rollout.exceptions import AuthenticationError
from ..rollout.models import DeploymentContext

logger = logging.getLogger(__name__)

DEFAULT_ROLE_NAME = "OrganizationAccountAccessRole"
ROLE_SESSION_DURATION = 3600


class AWSClientManager:
    """Manages the base AWS session for a rollout.

    The base session belongs to the organization's management account. Member
    accounts are reached by assuming a role, and each assumption is captured
    as an immutable ``DeploymentContext``.
    """

    def __init__(self, profile: Optional[str] = None, region: Optional[str] = None):
        """
        Initialize the AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use for global API calls
        """
        self.profile = profile
        self.region = region
        self.session: Optional[Any] = None
        self._caller_identity: Optional[Dict[str, Any]] = None
        self._init_session()

    def _init_session(self) -> None:
        """Initialize the AWS session."""
        session_kwargs = {}
        if self.profile:
            session_kwargs["profile_name"] = self.profile
        if self.region:
            session_kwargs["region_name"] = self.region

        try:
            self.session = boto3.Session(**session_kwargs)
        except ProfileNotFound as e:
            raise AuthenticationError(str(e), context={"profile": self.profile})

        if not self.region:
            self.region = self.session.region_name or "us-east-1"

    def get_client(self, service_name: str, region: Optional[str] = None) -> Any:
        """
        Get an AWS service client from the base session.

        Args:
            service_name: Name of the AWS service
            region: Region override for the client

        Returns:
            AWS service client
        """
        if self.session is None:
            raise RuntimeError("Session not initialized")
        return self.session.client(service_name, region_name=region or self.region)

    def get_caller_identity(self) -> Dict[str, Any]:
        """
        Get the identity behind the base session.

        Returns:
            STS caller identity response

        Raises:
            AuthenticationError: If the credentials are missing, invalid or expired
        """
        if self._caller_identity is not None:
            return self._caller_identity

        try:
            self._caller_identity = self.get_client("sts").get_caller_identity()
        except (NoCredentialsError, PartialCredentialsError) as e:
            raise AuthenticationError(f"No usable AWS credentials: {e}")
        except ClientError as e:
            raise AuthenticationError(
                f"AWS credentials rejected: {e.response.get('Error', {}).get('Message', e)}",
                context={"code": e.response.get("Error", {}).get("Code")},
            )
        return self._caller_identity

    def get_account_id(self) -> str:
        """Get the account ID of the base session."""
        return str(self.get_caller_identity()["Account"])

    def list_organization_accounts(self) -> List[Dict[str, Any]]:
        """
        List all active accounts in the organization.

        Returns:
            Account dictionaries containing Id, Name and Status

        Raises:
            ClientError: If the organization cannot be listed
        """
        paginator = self.get_client("organizations").get_paginator("list_accounts")
        accounts = []
        for page in paginator.paginate():
            for account in page.get("Accounts", []):
                if account.get("Status") == "ACTIVE":
                    accounts.append(account)
        logger.debug(f"Found {len(accounts)} active accounts in the organization")
        return accounts

    def available_regions(self, service_name: str) -> List[str]:
        """Get the regions where a service has an endpoint."""
        if self.session is None:
            raise RuntimeError("Session not initialized")
        return list(self.session.get_available_regions(service_name))

    def management_context(self) -> DeploymentContext:
        """Context for the management account itself, using the base session."""
        return DeploymentContext(account_id=self.get_account_id(), profile=self.profile)

    def assume_account_role(
        self, account_id: str, role_name: str = DEFAULT_ROLE_NAME
    ) -> DeploymentContext:
        """
        Assume a role in a member account.

        Args:
            account_id: Member account to assume into
            role_name: Name of the role to assume

        Returns:
            Immutable credential context for the account

        Raises:
            ClientError: If role assumption fails
        """
        role_arn = f"arn:aws:iam::{account_id}:role/{role_name}"
        response = self.get_client("sts").assume_role(
            RoleArn=role_arn,
            RoleSessionName=f"awsrollout-{int(datetime.now().timestamp())}",
            DurationSeconds=ROLE_SESSION_DURATION,
        )

        credentials = response["Credentials"]
        logger.debug(f"Assumed role {role_arn}")
        return DeploymentContext(
            account_id=account_id,
            role_arn=role_arn,
            access_key_id=credentials["AccessKeyId"],
            secret_access_key=credentials["SecretAccessKey"],
            session_token=credentials["SessionToken"],
            expiration=credentials.get("Expiration"),
        )

    def context_for_account(
        self, account_id: str, role_name: str = DEFAULT_ROLE_NAME
    ) -> DeploymentContext:
        """Get a credential context for an account.

        The management account uses the base session; every other account gets
        an assumed-role context.
        """
        if account_id == self.get_account_id():
            return self.management_context()
        return self.assume_account_role(account_id, role_name)


def list_enabled_regions(context: DeploymentContext, region: str = "us-east-1") -> List[str]:
    """
    List the regions enabled for an account.

    Args:
        context: Credentials for the account
        region: Region used for the EC2 API call

    Returns:
        Sorted region names that are opted in or do not require opt-in
    """
    ec2 = context.create_session(region).client("ec2")
    response = ec2.describe_regions(
        Filters=[{"Name": "opt-in-status", "Values": ["opt-in-not-required", "opted-in"]}]
    )
    return sorted(r["RegionName"] for r in response.get("Regions", []))
