"""Configuration utilities for awsrollout."""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

from ..rollout.errors import ErrorCategory

console = Console()

CONFIG_DIR = Path.home() / ".awsrollout"
CONFIG_FILE_YAML = CONFIG_DIR / "config.yaml"

# Default rollout configuration
DEFAULT_ROLLOUT_CONFIG = {
    "concurrency": 5,
    "max_retries": 3,
    "wave_delay_seconds": 2.0,
    "backoff": {
        "base_delay": 1.0,
        "max_delay": 60.0,
        "exponential_base": 2.0,
        "jitter_factor": 0.1,
    },
    "role_name": "OrganizationAccountAccessRole",
    # Assumed-role contexts this close to expiry are refreshed before each wave
    "credential_refresh_margin_seconds": 1800,
    "name_prefix": "rollout",
    "run_log": "~/.awsrollout/runs/outcomes.csv",
    "watch_interval_seconds": 3600,
    "cloudformation": {
        "on_failure": "DELETE",
        "poll_delay": 15,
        "max_wait_attempts": 120,
    },
    "classifier": {
        # Category name -> extra error codes / message regexes
        "extra_codes": {},
        "extra_patterns": {},
    },
}

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    "level": "INFO",
    "file": "~/.awsrollout/logs/awsrollout.log",
    "structured": False,
    "max_file_size_mb": 10,
    "backup_count": 5,
    "boto_logging": False,
}


class Config:
    """Manages awsrollout configuration stored as YAML."""

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize the configuration manager.

        Args:
            config_file: Configuration file to use (defaults to ~/.awsrollout/config.yaml)
        """
        self.config_file = Path(config_file) if config_file else CONFIG_FILE_YAML
        self.config_data: Dict[str, Any] = {}
        self._config_loaded = False

    def _ensure_config_loaded(self):
        """Ensure configuration is loaded from file."""
        if not self._config_loaded:
            self._load_config()
            self._config_loaded = True

    def reload_config(self):
        """Force reload configuration from file."""
        self._config_loaded = False
        self._ensure_config_loaded()

    def _load_config(self):
        """Load configuration from the YAML file, if it exists."""
        if not self.config_file.exists():
            self.config_data = {}
            return

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            console.print(
                f"[red]Error: Configuration file {self.config_file} is not valid YAML: {e}[/red]"
            )
            data = {}
        except OSError as e:
            console.print(f"[red]Error reading configuration file {self.config_file}: {e}[/red]")
            data = {}

        if not isinstance(data, dict):
            console.print(
                f"[yellow]Warning: Ignoring {self.config_file}: top level must be a mapping[/yellow]"
            )
            data = {}
        self.config_data = data

    def save_config(self):
        """Save the configuration to the YAML file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.dump(self.config_data, f, default_flow_style=False, indent=2, sort_keys=False)
        except OSError as e:
            console.print(f"[red]Error saving configuration: {e}[/red]")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value with dot notation support.

        Args:
            key: Configuration key (supports dot notation like "rollout.backoff.max_delay")
            default: Default value if key doesn't exist

        Returns:
            Configuration value
        """
        self._ensure_config_loaded()

        value: Any = self.config_data
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any):
        """
        Set a configuration value, creating intermediate sections for dot keys.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self._ensure_config_loaded()

        keys = key.split(".")
        section = self.config_data
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value

        self.save_config()

    def set_section(self, section: str, value: Any):
        """
        Set a configuration section, merging with existing values.

        Args:
            section: Configuration section name
            value: Configuration section value
        """
        self._ensure_config_loaded()

        existing_section = self.config_data.get(section, {})
        if isinstance(existing_section, dict) and isinstance(value, dict):
            self.config_data[section] = self._deep_merge(existing_section, value)
        else:
            self.config_data[section] = value

        self.save_config()

    def _deep_merge(self, dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries, preserving existing values.

        Args:
            dict1: Base dictionary
            dict2: Dictionary to merge

        Returns:
            Merged dictionary
        """
        result = dict1.copy()
        for key, value in dict2.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def get_all(self) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            All configuration values
        """
        self._ensure_config_loaded()
        return self.config_data.copy()

    def get_rollout_config(self) -> Dict[str, Any]:
        """
        Get rollout configuration with defaults and environment variable overrides.

        Returns:
            Rollout configuration dictionary
        """
        self._ensure_config_loaded()
        rollout_config = copy.deepcopy(DEFAULT_ROLLOUT_CONFIG)

        file_rollout_config = self.config_data.get("rollout", {})
        if isinstance(file_rollout_config, dict):
            rollout_config = self._deep_merge(rollout_config, file_rollout_config)

        rollout_config["concurrency"] = self._get_env_int(
            "AWSROLLOUT_CONCURRENCY", rollout_config["concurrency"]
        )
        rollout_config["max_retries"] = self._get_env_int(
            "AWSROLLOUT_MAX_RETRIES", rollout_config["max_retries"]
        )
        rollout_config["wave_delay_seconds"] = self._get_env_float(
            "AWSROLLOUT_WAVE_DELAY", rollout_config["wave_delay_seconds"]
        )
        rollout_config["role_name"] = os.environ.get(
            "AWSROLLOUT_ROLE_NAME", rollout_config["role_name"]
        )

        run_log = os.environ.get("AWSROLLOUT_RUN_LOG", rollout_config["run_log"])
        rollout_config["run_log"] = os.path.expanduser(run_log) if run_log else None

        return rollout_config

    def get_logging_config(self) -> Dict[str, Any]:
        """
        Get logging configuration with defaults and environment variable overrides.

        Returns:
            Logging configuration dictionary
        """
        self._ensure_config_loaded()
        logging_config = copy.deepcopy(DEFAULT_LOGGING_CONFIG)

        file_logging_config = self.config_data.get("logging", {})
        if isinstance(file_logging_config, dict):
            logging_config.update(file_logging_config)

        logging_config["level"] = os.environ.get("AWSROLLOUT_LOG_LEVEL", logging_config["level"])
        logging_config["structured"] = self._get_env_bool(
            "AWSROLLOUT_LOG_STRUCTURED", logging_config["structured"]
        )
        if logging_config.get("file"):
            logging_config["file"] = os.path.expanduser(logging_config["file"])

        return logging_config

    def _get_env_bool(self, env_var: str, default: bool) -> bool:
        """
        Get boolean value from environment variable.

        Args:
            env_var: Environment variable name
            default: Default value if env var is not set

        Returns:
            Boolean value
        """
        value = os.environ.get(env_var)
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    def _get_env_int(self, env_var: str, default: int) -> int:
        """
        Get integer value from environment variable.

        Args:
            env_var: Environment variable name
            default: Default value if env var is not set

        Returns:
            Integer value
        """
        value = os.environ.get(env_var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            console.print(
                f"Warning: Invalid integer value for {env_var}: {value}. Using default: {default}"
            )
            return default

    def _get_env_float(self, env_var: str, default: float) -> float:
        value = os.environ.get(env_var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            console.print(
                f"Warning: Invalid number for {env_var}: {value}. Using default: {default}"
            )
            return default

    def validate_rollout_config(
        self, rollout_config: Optional[Dict[str, Any]] = None
    ) -> List[str]:
        """
        Validate rollout configuration.

        Args:
            rollout_config: Rollout configuration to validate. If None, uses current config.

        Returns:
            List of validation errors
        """
        if rollout_config is None:
            rollout_config = self.get_rollout_config()

        errors = []

        concurrency = rollout_config.get("concurrency")
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            errors.append("concurrency must be a positive integer")
        elif concurrency > 100:
            errors.append("concurrency cannot exceed 100")

        max_retries = rollout_config.get("max_retries")
        if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
            errors.append("max_retries must be a non-negative integer")

        wave_delay = rollout_config.get("wave_delay_seconds")
        if not isinstance(wave_delay, (int, float)) or wave_delay < 0:
            errors.append("wave_delay_seconds must be a non-negative number")

        margin = rollout_config.get("credential_refresh_margin_seconds")
        if not isinstance(margin, (int, float)) or margin < 0:
            errors.append("credential_refresh_margin_seconds must be a non-negative number")

        backoff = rollout_config.get("backoff", {})
        if not isinstance(backoff, dict):
            errors.append("backoff must be a mapping")
        else:
            for key in ("base_delay", "max_delay", "exponential_base"):
                value = backoff.get(key)
                if not isinstance(value, (int, float)) or value <= 0:
                    errors.append(f"backoff.{key} must be a positive number")
            jitter = backoff.get("jitter_factor")
            if not isinstance(jitter, (int, float)) or not 0 <= jitter <= 1:
                errors.append("backoff.jitter_factor must be between 0.0 and 1.0")

        if not rollout_config.get("role_name"):
            errors.append("role_name is required")
        if not rollout_config.get("name_prefix"):
            errors.append("name_prefix is required")

        classifier = rollout_config.get("classifier", {})
        valid_categories = {category.value for category in ErrorCategory}
        for section in ("extra_codes", "extra_patterns"):
            for category in (classifier.get(section) or {}).keys():
                if category not in valid_categories:
                    errors.append(f"classifier.{section}: unknown category '{category}'")

        for category, patterns in (classifier.get("extra_patterns") or {}).items():
            for pattern in patterns or []:
                try:
                    re.compile(pattern)
                except (re.error, TypeError) as e:
                    errors.append(
                        f"classifier.extra_patterns.{category}: invalid pattern '{pattern}': {e}"
                    )

        return errors

    def get_config_file_path(self) -> Path:
        """
        Get the path to the configuration file.

        Returns:
            Path to the configuration file being used
        """
        return self.config_file
