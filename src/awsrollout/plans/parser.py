"""
Rollout plan parser for YAML and JSON formats.

This module handles parsing of plan files with automatic format detection.
"""

import json
import logging
from pathlib import Path

import yaml

from .models import RolloutPlan

logger = logging.getLogger(__name__)


class PlanParser:
    """Handles parsing of rollout plan files in YAML/JSON formats."""

    def parse_file(self, file_path: Path) -> RolloutPlan:
        """Parse a plan from a file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file cannot be read or parsed
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Plan file not found: {file_path}")

        if not file_path.is_file():
            raise ValueError(f"Path is not a file: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = f.read()
        except UnicodeDecodeError as e:
            raise ValueError(f"Failed to read plan file: {e}")

        format_type = self._detect_format(file_path)
        return self.parse_string(content, format_type)

    def parse_string(self, content: str, format: str) -> RolloutPlan:
        """Parse a plan from string content."""
        if not content.strip():
            raise ValueError("Plan content is empty")

        if format.lower() == "yaml":
            data = self._load_yaml(content)
        elif format.lower() == "json":
            data = self._load_json(content)
        else:
            raise ValueError(f"Unsupported format: {format}")

        try:
            return RolloutPlan.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to build plan: {e}")
            raise ValueError(f"Failed to parse plan: {e}")

    def _detect_format(self, file_path: Path) -> str:
        """Auto-detect file format from extension."""
        suffix = file_path.suffix.lower()

        if suffix in [".yaml", ".yml"]:
            return "yaml"
        elif suffix == ".json":
            return "json"
        else:
            logger.warning(f"Unknown file extension '{suffix}', defaulting to YAML format")
            return "yaml"

    def _load_yaml(self, content: str) -> dict:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format: {e}")

        if data is None:
            raise ValueError("YAML content is empty or contains only comments")
        if not isinstance(data, dict):
            raise ValueError("YAML content must be a dictionary")
        return data

    def _load_json(self, content: str) -> dict:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON format: {e}")

        if not isinstance(data, dict):
            raise ValueError("JSON content must be a dictionary")
        return data
