"""Test fixtures package for awsrollout.

Usage:
    from tests.fixtures.rollout import ScriptedProvider, client_error
"""

from .rollout import (
    ScriptedProvider,
    client_error,
    make_contexts,
    make_targets,
    sample_targets,
    sample_template,
)

__all__ = [
    "ScriptedProvider",
    "client_error",
    "make_contexts",
    "make_targets",
    "sample_targets",
    "sample_template",
]
