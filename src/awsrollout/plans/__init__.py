"""Rollout plan files: models, parsing and template parameter inspection."""

from .inspector import DeclaredParameter, TemplateInspector
from .models import RolloutPlan, ScopeFilter
from .parser import PlanParser

__all__ = ["DeclaredParameter", "PlanParser", "RolloutPlan", "ScopeFilter", "TemplateInspector"]
