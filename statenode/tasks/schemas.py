"""
schemas.py - request contracts for the task routes.

Fields are deliberately lenient here: title presence and priority defaults are
enforced by tasks.manager so the same rules apply outside HTTP.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskCreateRequest(BaseModel):
    """Body of POST /tasks."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, description="Required, non-empty.")
    description: Optional[str] = Field(default=None, description="Defaults to an empty string.")
    priority: Optional[Any] = Field(
        default=None,
        description="low | medium | high. Missing or unrecognized values become 'medium'.",
    )
