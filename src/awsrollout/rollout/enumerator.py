"""Target enumeration across accounts and regions."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from ..aws_clients.manager import DEFAULT_ROLE_NAME, AWSClientManager, list_enabled_regions
from .models import DeploymentContext, Target

logger = logging.getLogger(__name__)

NO_ORGANIZATION_CODES = {"AWSOrganizationsNotInUseException", "AccessDeniedException"}


@dataclass
class EnumerationResult:
    """Targets plus the credential context for each account they belong to."""

    targets: List[Target] = field(default_factory=list)
    contexts: Dict[str, DeploymentContext] = field(default_factory=dict)
    excluded_accounts: Dict[str, str] = field(default_factory=dict)

    @property
    def account_ids(self) -> List[str]:
        """Accounts that contributed at least one target, in target order."""
        seen: List[str] = []
        for target in self.targets:
            if target.account_id not in seen:
                seen.append(target.account_id)
        return seen


class TargetEnumerator:
    """Produces the ordered list of eligible (account, region) targets.

    Account failures are soft: an account whose role cannot be assumed or
    whose regions cannot be listed is logged and left out. Only a failure of
    the base session stops enumeration.
    """

    def __init__(
        self,
        client_manager: AWSClientManager,
        required_services: Optional[Sequence[str]] = None,
        include_accounts: Optional[Sequence[str]] = None,
        exclude_accounts: Optional[Sequence[str]] = None,
        include_regions: Optional[Sequence[str]] = None,
        exclude_regions: Optional[Sequence[str]] = None,
        role_name: str = DEFAULT_ROLE_NAME,
        region_lister: Callable[[DeploymentContext], List[str]] = list_enabled_regions,
    ):
        """Initialize the enumerator.

        Args:
            client_manager: Manager holding the base session
            required_services: Services that must be available in a region
            include_accounts: Explicit account list; the organization is listed if empty
            exclude_accounts: Accounts never targeted
            include_regions: If set, only these regions are considered
            exclude_regions: Regions never targeted
            role_name: Role assumed in member accounts
            region_lister: Lists enabled regions for an account context
        """
        self.client_manager = client_manager
        self.required_services = list(required_services or [])
        self.include_accounts = [str(a) for a in include_accounts or []]
        self.exclude_accounts = {str(a) for a in exclude_accounts or []}
        self.include_regions = list(include_regions or [])
        self.exclude_regions = set(exclude_regions or [])
        self.role_name = role_name
        self.region_lister = region_lister

    def enumerate(self) -> EnumerationResult:
        """Enumerate eligible targets.

        Returns:
            Deduplicated targets ordered by account, then region, with contexts

        Raises:
            AuthenticationError: If the base session credentials are not valid
        """
        # Fails fast with AuthenticationError before any per-account work.
        self.client_manager.get_caller_identity()

        result = EnumerationResult()
        capable_regions = self._capable_regions()
        seen = set()

        for account_id in self._candidate_accounts():
            if account_id in self.exclude_accounts:
                logger.debug(f"Account {account_id} excluded by filter")
                continue

            try:
                context = self.client_manager.context_for_account(account_id, self.role_name)
                regions = self.region_lister(context)
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Excluding account {account_id}: {e}")
                result.excluded_accounts[account_id] = str(e)
                continue

            eligible = self._filter_regions(regions, capable_regions)
            if not eligible:
                logger.info(f"Account {account_id} has no eligible regions")
                continue

            result.contexts[account_id] = context
            for region in eligible:
                target = Target(account_id=account_id, region=region)
                if target not in seen:
                    seen.add(target)
                    result.targets.append(target)

        logger.info(
            f"Enumerated {len(result.targets)} targets across {len(result.contexts)} accounts"
        )
        return result

    def refresh_context(self, account_id: str) -> DeploymentContext:
        """Assume the rollout role again for an account whose credentials are expiring."""
        logger.info(f"Refreshing credentials for account {account_id}")
        return self.client_manager.context_for_account(account_id, self.role_name)

    def _candidate_accounts(self) -> List[str]:
        if self.include_accounts:
            return list(dict.fromkeys(self.include_accounts))

        try:
            accounts = self.client_manager.list_organization_accounts()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code not in NO_ORGANIZATION_CODES:
                raise
            logger.warning(
                f"Cannot list organization accounts ({code}); using the current account only"
            )
            return [self.client_manager.get_account_id()]

        return sorted(str(account["Id"]) for account in accounts)

    def _capable_regions(self) -> Optional[set]:
        """Regions where every required service has an endpoint, or None if unconstrained."""
        if not self.required_services:
            return None

        capable: Optional[set] = None
        for service in self.required_services:
            regions = set(self.client_manager.available_regions(service))
            capable = regions if capable is None else capable & regions
        return capable

    def _filter_regions(self, regions: List[str], capable: Optional[set]) -> List[str]:
        eligible = []
        for region in self.include_regions or sorted(regions):
            if region not in regions:
                continue
            if region in self.exclude_regions:
                continue
            if capable is not None and region not in capable:
                logger.debug(f"Region {region} lacks a required service")
                continue
            if region not in eligible:
                eligible.append(region)
        return eligible
