"""Template parameter inspection.

Only the parameter names a template declares (and whether each has a default)
are read. Nothing else about the template is interpreted.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..rollout.exceptions import PlanValidationError, TemplateError
from ..rollout.provider import template_source
from .models import RolloutPlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeclaredParameter:
    """A parameter declared by a template."""

    name: str
    has_default: bool
    no_echo: bool = False


class TemplateInspector:
    """Reads declared parameters through CloudFormation ``get_template_summary``."""

    def __init__(self, cloudformation_client: Any):
        """
        Initialize the inspector.

        Args:
            cloudformation_client: CloudFormation client from the base session
        """
        self.client = cloudformation_client

    def declared_parameters(self, uri: str) -> Dict[str, DeclaredParameter]:
        """
        Get the parameters a template declares.

        Args:
            uri: Template URL or local path

        Returns:
            Declared parameters keyed by name

        Raises:
            TemplateError: If the template cannot be read or summarized
        """
        try:
            response = self.client.get_template_summary(**template_source(uri))
        except (ClientError, BotoCoreError) as e:
            raise TemplateError(f"Failed to inspect template {uri}: {e}", uri=uri)

        declared = {}
        for parameter in response.get("Parameters", []):
            name = parameter["ParameterKey"]
            declared[name] = DeclaredParameter(
                name=name,
                has_default="DefaultValue" in parameter,
                no_echo=bool(parameter.get("NoEcho", False)),
            )
        return declared

    def resolve_parameters(
        self, plan: RolloutPlan, declared: Optional[Dict[str, DeclaredParameter]] = None
    ) -> Dict[str, Any]:
        """
        Match plan parameters against the template's declared parameters.

        Parameters the template does not declare are dropped with a warning.
        Declared parameters with no default and no plan value fail validation.

        Args:
            plan: Plan whose parameters are resolved
            declared: Already-fetched declared parameters (fetched if not provided)

        Returns:
            The plan parameters that the template accepts

        Raises:
            PlanValidationError: If required parameters are missing
        """
        if declared is None:
            declared = self.declared_parameters(plan.template_url)

        resolved = {}
        for key, value in plan.parameters.items():
            if key in declared:
                resolved[key] = value
            else:
                logger.warning(f"Dropping parameter '{key}': not declared by {plan.template_url}")

        errors: List[str] = [
            f"Missing value for template parameter '{name}'"
            for name, parameter in sorted(declared.items())
            if not parameter.has_default and name not in resolved
        ]
        if errors:
            raise PlanValidationError(errors, plan_name=plan.name)

        return resolved
