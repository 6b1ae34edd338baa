"""Data models for multi-account, multi-region rollouts.

Classes:
    Target: One (account, region) pair eligible for deployment
    TemplateRef: Opaque template URI plus its parameter mapping
    DeploymentRequest: A single deployment attempt against a target
    DeploymentStatus: Terminal status of a target within one cycle
    DeploymentOutcome: Result of all attempts against one target
    RunSummary: Counts derived from the outcomes of one run
    DeploymentContext: Immutable per-account credential value
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True, order=True)
class Target:
    """One (account, region) pair. Immutable once enumerated."""

    account_id: str
    region: str

    def get_display_name(self) -> str:
        """Get a human-readable display name for the target."""
        return f"{self.account_id}/{self.region}"


@dataclass(frozen=True)
class TemplateRef:
    """Reference to a deployable template.

    The URI is opaque to the rollout core. Parameter values may contain the
    placeholders ``{account_id}``, ``{region}`` and ``{name}``, which are
    expanded for each request.
    """

    uri: str
    parameters: Mapping[str, str] = field(default_factory=dict)

    def render_parameters(self, target: Target, name: str) -> Dict[str, str]:
        """Expand per-target placeholders in the parameter values.

        Args:
            target: Target the parameters are rendered for
            name: Generated deployment name for the request

        Returns:
            New dictionary of rendered parameter values
        """
        values = {"account_id": target.account_id, "region": target.region, "name": name}
        rendered = {}
        for key, value in self.parameters.items():
            text = str(value)
            for placeholder, replacement in values.items():
                text = text.replace("{" + placeholder + "}", replacement)
            rendered[key] = text
        return rendered


@dataclass(frozen=True)
class DeploymentRequest:
    """A single create-or-update attempt. A retry builds a new request."""

    target: Target
    template: TemplateRef
    parameters: Mapping[str, str]
    generated_name: str
    attempt: int = 1
    tags: Mapping[str, str] = field(default_factory=dict)


class DeploymentStatus(str, Enum):
    """Terminal status of a target."""

    SUCCEEDED = "Succeeded"
    SKIPPED = "Skipped"
    FAILED = "Failed"
    BLOCKED = "Blocked"


@dataclass(frozen=True)
class DeploymentOutcome:
    """Terminal result for one target in one cycle."""

    target: Target
    success: bool
    status: DeploymentStatus
    reason: str
    resource_id: Optional[str] = None
    error: Optional[str] = None
    error_category: Optional[str] = None
    attempts: int = 0
    deployment_name: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: float = field(default_factory=time.time)

    @property
    def duration(self) -> float:
        """Seconds spent on this target."""
        return max(0.0, self.finished_at - self.started_at)

    @classmethod
    def succeeded(
        cls,
        request: DeploymentRequest,
        resource_id: Optional[str],
        started_at: float,
        reason: str = "Deployment succeeded",
    ) -> "DeploymentOutcome":
        """Build a successful outcome for a request."""
        return cls(
            target=request.target,
            success=True,
            status=DeploymentStatus.SUCCEEDED,
            reason=reason,
            resource_id=resource_id,
            attempts=request.attempt,
            deployment_name=request.generated_name,
            started_at=started_at,
            finished_at=time.time(),
        )

    def to_row(self, run_id: str) -> Dict[str, Any]:
        """Flatten the outcome into a run log row."""
        return {
            "run_id": run_id,
            "account_id": self.target.account_id,
            "region": self.target.region,
            "status": self.status.value,
            "success": self.success,
            "reason": self.reason,
            "resource_id": self.resource_id or "",
            "error": self.error or "",
            "error_category": self.error_category or "",
            "attempts": self.attempts,
            "deployment_name": self.deployment_name or "",
            "started_at": datetime.fromtimestamp(self.started_at).isoformat(),
            "finished_at": datetime.fromtimestamp(self.finished_at).isoformat(),
        }


@dataclass(frozen=True)
class RunSummary:
    """Counts for one run. Derived from outcomes, never owned separately."""

    run_id: str
    started_at: float
    finished_at: float
    total_attempted: int
    succeeded: int
    failed: int
    skipped: int
    blocked: int

    @classmethod
    def from_outcomes(
        cls,
        run_id: str,
        outcomes: List[DeploymentOutcome],
        started_at: float,
        finished_at: Optional[float] = None,
    ) -> "RunSummary":
        """Compute the summary from a list of outcomes."""
        counts = {status: 0 for status in DeploymentStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1

        return cls(
            run_id=run_id,
            started_at=started_at,
            finished_at=finished_at if finished_at is not None else time.time(),
            total_attempted=len(outcomes),
            succeeded=counts[DeploymentStatus.SUCCEEDED],
            failed=counts[DeploymentStatus.FAILED],
            skipped=counts[DeploymentStatus.SKIPPED],
            blocked=counts[DeploymentStatus.BLOCKED],
        )

    @property
    def duration(self) -> float:
        """Run duration in seconds."""
        return max(0.0, self.finished_at - self.started_at)

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage."""
        if self.total_attempted == 0:
            return 0.0
        return (self.succeeded / self.total_attempted) * 100.0

    def has_failures(self) -> bool:
        """Check if any target failed or was blocked."""
        return self.failed > 0 or self.blocked > 0

    def get_summary_stats(self) -> Dict[str, Any]:
        """Get summary statistics as a dictionary."""
        return {
            "run_id": self.run_id,
            "total_attempted": self.total_attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "blocked": self.blocked,
            "success_rate": round(self.success_rate, 2),
            "duration_seconds": round(self.duration, 2),
        }


@dataclass(frozen=True)
class DeploymentContext:
    """Credentials for one account, passed explicitly into each executor call.

    A context with no access key falls back to the default credential chain
    (used for the management account itself).
    """

    account_id: str
    role_arn: Optional[str] = None
    access_key_id: Optional[str] = field(default=None, repr=False)
    secret_access_key: Optional[str] = field(default=None, repr=False)
    session_token: Optional[str] = field(default=None, repr=False)
    expiration: Optional[datetime] = None
    profile: Optional[str] = None

    def create_session(self, region: str) -> Any:
        """Create a fresh boto3 session for a region.

        boto3 sessions are not thread-safe, so each executor call gets its own.
        """
        import boto3

        if self.access_key_id:
            return boto3.Session(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                aws_session_token=self.session_token,
                region_name=region,
            )
        return boto3.Session(profile_name=self.profile, region_name=region)

    def is_expired(self, now: Optional[datetime] = None, margin: float = 0.0) -> bool:
        """Check if the assumed-role credentials expire within ``margin`` seconds."""
        if self.expiration is None:
            return False
        now = now or datetime.now(self.expiration.tzinfo)
        return now + timedelta(seconds=margin) >= self.expiration
