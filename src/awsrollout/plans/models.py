"""
Rollout plan data models.

A plan names the template to deploy, its parameters, and the accounts and
regions it may be deployed to. Run-time settings in a plan override the
values from the configuration file.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..rollout.models import TemplateRef

ACCOUNT_ID_PATTERN = re.compile(r"^\d{12}$")
REGION_PATTERN = re.compile(r"^[a-z]{2}(-[a-z]+)+-\d+$")
VALID_CAPABILITIES = {"CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"}


@dataclass
class ScopeFilter:
    """Include and exclude lists for accounts or regions."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert filter to dictionary."""
        return {"include": list(self.include), "exclude": list(self.exclude)}

    @classmethod
    def from_dict(cls, data: Any) -> "ScopeFilter":
        """Create a filter from a dictionary or a plain list of includes."""
        if data is None:
            return cls()
        if isinstance(data, list):
            return cls(include=[str(v) for v in data])
        if not isinstance(data, dict):
            raise ValueError("Scope filter must be a list or a mapping with include/exclude")
        return cls(
            include=[str(v) for v in data.get("include") or []],
            exclude=[str(v) for v in data.get("exclude") or []],
        )

    def overlap(self) -> List[str]:
        """Values that are both included and excluded."""
        return sorted(set(self.include) & set(self.exclude))


@dataclass
class RolloutPlan:
    """Complete rollout plan definition."""

    name: str
    template_url: str
    description: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    required_services: List[str] = field(default_factory=list)
    accounts: ScopeFilter = field(default_factory=ScopeFilter)
    regions: ScopeFilter = field(default_factory=ScopeFilter)
    concurrency: Optional[int] = None
    max_retries: Optional[int] = None
    name_prefix: Optional[str] = None
    capabilities: List[str] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert plan to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "template_url": self.template_url,
            "parameters": dict(self.parameters),
            "required_services": list(self.required_services),
            "accounts": self.accounts.to_dict(),
            "regions": self.regions.to_dict(),
            "concurrency": self.concurrency,
            "max_retries": self.max_retries,
            "name_prefix": self.name_prefix,
            "capabilities": list(self.capabilities),
            "tags": dict(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RolloutPlan":
        """Create plan from dictionary."""
        if "name" not in data:
            raise ValueError("Plan must have a 'name'")
        if "template_url" not in data:
            raise ValueError("Plan must have a 'template_url'")

        return cls(
            name=str(data["name"]),
            template_url=str(data["template_url"]),
            description=data.get("description"),
            parameters=dict(data.get("parameters") or {}),
            required_services=list(data.get("required_services") or []),
            accounts=ScopeFilter.from_dict(data.get("accounts")),
            regions=ScopeFilter.from_dict(data.get("regions")),
            concurrency=data.get("concurrency"),
            max_retries=data.get("max_retries"),
            name_prefix=data.get("name_prefix"),
            capabilities=list(data.get("capabilities") or []),
            tags={str(k): str(v) for k, v in (data.get("tags") or {}).items()},
        )

    def validate(self) -> List[str]:
        """Validate the plan structure.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.name or not self.name.strip():
            errors.append("Plan name cannot be empty")
        if not self.template_url or not self.template_url.strip():
            errors.append("Plan template_url cannot be empty")

        if self.concurrency is not None:
            if not isinstance(self.concurrency, int) or self.concurrency < 1:
                errors.append("concurrency must be a positive integer")
        if self.max_retries is not None:
            if not isinstance(self.max_retries, int) or self.max_retries < 0:
                errors.append("max_retries must be a non-negative integer")

        for key, value in self.parameters.items():
            if isinstance(value, (dict, list)):
                errors.append(f"Parameter '{key}' must be a scalar value")

        for account_id in self.accounts.include + self.accounts.exclude:
            if not ACCOUNT_ID_PATTERN.match(account_id):
                errors.append(f"Invalid account ID '{account_id}': must be 12 digits")
        for region in self.regions.include + self.regions.exclude:
            if not REGION_PATTERN.match(region):
                errors.append(f"Invalid region name '{region}'")

        for value in self.accounts.overlap():
            errors.append(f"Account {value} is both included and excluded")
        for value in self.regions.overlap():
            errors.append(f"Region {value} is both included and excluded")

        for capability in self.capabilities:
            if capability not in VALID_CAPABILITIES:
                errors.append(f"Unknown capability '{capability}'")

        return errors

    def template_ref(self, parameters: Optional[Dict[str, Any]] = None) -> TemplateRef:
        """Build the template reference, optionally with a filtered parameter set."""
        values = self.parameters if parameters is None else parameters
        return TemplateRef(
            uri=self.template_url,
            parameters={key: self._format_value(value) for key, value in values.items()},
        )

    @staticmethod
    def _format_value(value: Any) -> str:
        # CloudFormation expects strings; YAML booleans must not become "True".
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
