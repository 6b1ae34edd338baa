"""Tests for rollout plan parsing and validation."""

import json

import pytest

from src.awsrollout.plans.models import RolloutPlan, ScopeFilter
from src.awsrollout.plans.parser import PlanParser

VALID_YAML = """
name: baseline-logging
description: Central logging bucket
template_url: https://example-bucket.s3.amazonaws.com/logging.yaml
parameters:
  BucketName: "logs-{account_id}-{region}"
  Versioning: true
  RetentionDays: 30
required_services:
  - cloudformation
  - s3
accounts:
  exclude:
    - "999999999999"
regions:
  - us-east-1
  - eu-west-1
concurrency: 4
capabilities:
  - CAPABILITY_IAM
tags:
  owner: platform
"""


class TestPlanParser:
    """Test cases for PlanParser."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = PlanParser()

    def test_parse_yaml(self):
        plan = self.parser.parse_string(VALID_YAML, "yaml")

        assert plan.name == "baseline-logging"
        assert plan.required_services == ["cloudformation", "s3"]
        assert plan.accounts == ScopeFilter(include=[], exclude=["999999999999"])
        assert plan.regions.include == ["us-east-1", "eu-west-1"]
        assert plan.concurrency == 4
        assert plan.max_retries is None
        assert plan.tags == {"owner": "platform"}
        assert plan.validate() == []

    def test_parse_json_file(self, tmp_path):
        plan_file = tmp_path / "plan.json"
        plan_file.write_text(
            json.dumps({"name": "p", "template_url": "https://example.com/t.yaml"})
        )

        plan = self.parser.parse_file(plan_file)

        assert plan.name == "p"
        assert plan.parameters == {}

    def test_unknown_extension_defaults_to_yaml(self, tmp_path):
        plan_file = tmp_path / "plan.txt"
        plan_file.write_text(VALID_YAML)

        assert self.parser.parse_file(plan_file).name == "baseline-logging"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            self.parser.parse_file(tmp_path / "missing.yaml")

    def test_directory_is_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="not a file"):
            self.parser.parse_file(tmp_path)

    @pytest.mark.parametrize(
        "content,format,message",
        [
            ("", "yaml", "empty"),
            ("# only a comment\n", "yaml", "empty or contains only comments"),
            ("- a\n- b\n", "yaml", "must be a dictionary"),
            ("name: [unclosed", "yaml", "Invalid YAML"),
            ("{not json", "json", "Invalid JSON"),
            ("name: p\n", "yaml", "template_url"),
            ("name: p\n", "toml", "Unsupported format"),
        ],
    )
    def test_parse_errors(self, content, format, message):
        with pytest.raises(ValueError, match=message):
            self.parser.parse_string(content, format)


class TestRolloutPlanValidation:
    """Test cases for RolloutPlan.validate."""

    def build(self, **overrides):
        data = {"name": "p", "template_url": "https://example.com/t.yaml"}
        data.update(overrides)
        return RolloutPlan.from_dict(data)

    def test_invalid_settings(self):
        plan = self.build(concurrency=0, max_retries=-1)

        errors = plan.validate()

        assert "concurrency must be a positive integer" in errors
        assert "max_retries must be a non-negative integer" in errors

    def test_invalid_scope_values(self):
        plan = self.build(
            accounts={"include": ["12345", "111111111111"], "exclude": ["111111111111"]},
            regions=["us-east-1", "Not_A_Region"],
        )

        errors = plan.validate()

        assert "Invalid account ID '12345': must be 12 digits" in errors
        assert "Account 111111111111 is both included and excluded" in errors
        assert "Invalid region name 'Not_A_Region'" in errors

    def test_non_scalar_parameters_and_unknown_capabilities(self):
        plan = self.build(parameters={"Subnets": ["a", "b"]}, capabilities=["CAPABILITY_ALL"])

        errors = plan.validate()

        assert "Parameter 'Subnets' must be a scalar value" in errors
        assert "Unknown capability 'CAPABILITY_ALL'" in errors

    def test_scope_filter_rejects_scalars(self):
        with pytest.raises(ValueError):
            ScopeFilter.from_dict("us-east-1")

    def test_template_ref_formats_values(self):
        plan = self.build(parameters={"Enabled": True, "Count": 3, "Name": "{name}"})

        template = plan.template_ref()

        assert template.uri == "https://example.com/t.yaml"
        assert dict(template.parameters) == {"Enabled": "true", "Count": "3", "Name": "{name}"}

    def test_template_ref_with_resolved_parameters(self):
        plan = self.build(parameters={"Keep": "a", "Drop": "b"})

        template = plan.template_ref({"Keep": "a"})

        assert dict(template.parameters) == {"Keep": "a"}

    def test_round_trip_through_dict(self):
        plan = RolloutPlan.from_dict(self.build(tags={"a": 1}).to_dict())

        assert plan.tags == {"a": "1"}
        assert plan.accounts == ScopeFilter()
