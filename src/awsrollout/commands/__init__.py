"""Command modules for awsrollout."""

from . import config, deploy, history, targets

__all__ = ["config", "deploy", "history", "targets"]
