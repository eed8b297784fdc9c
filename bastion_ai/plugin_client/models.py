"""Wire models for the plugin action protocol.

Plugins are independent services, so responses are parsed leniently: unknown
fields are ignored rather than rejected.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bastion_ai.approval_core.schemas.domain import RiskLevel


class PluginSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PluginAction(PluginSchema):
    description: str = ""
    risk: RiskLevel
    params_schema: Any = None


class PluginManifest(PluginSchema):
    name: str
    version: str
    description: Optional[str] = None
    actions: Dict[str, PluginAction] = Field(default_factory=dict)


class ValidationResult(PluginSchema):
    valid: bool
    errors: Optional[List[str]] = None


class PreviewResult(PluginSchema):
    summary: str
    details: Optional[str] = None

    def render(self) -> str:
        """Text stored on the request and shown to the approver."""
        if self.details:
            return f"{self.summary}\n{self.details}"
        return self.summary


class ExecutionResult(PluginSchema):
    success: bool
    result: Any = None
    error: Optional[str] = None


class ActionCall(PluginSchema):
    """Request body for ``POST /validate`` and ``POST /execute``."""

    action: str
    params: Any = None
