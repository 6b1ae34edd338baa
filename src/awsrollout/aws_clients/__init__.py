"""AWS client management for awsrollout."""

from .manager import DEFAULT_ROLE_NAME, AWSClientManager, list_enabled_regions

__all__ = ["AWSClientManager", "DEFAULT_ROLE_NAME", "list_enabled_regions"]
