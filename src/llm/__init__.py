"""
LLM integration for Sprout.
"""

from .client import LLMClient, get_client, set_client, is_configured
from .provider import AssessmentProvider, build_milestone_context, build_growth_context

__all__ = [
    "LLMClient",
    "get_client",
    "set_client",
    "is_configured",
    "AssessmentProvider",
    "build_milestone_context",
    "build_growth_context",
]
