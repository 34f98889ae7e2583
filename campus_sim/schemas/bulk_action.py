"""
Bulk action schemas.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field, model_validator


class BulkAction(str, enum.Enum):
    CLEAR_ALL = "CLEAR_ALL"
    BAN_PREFIX = "BAN_PREFIX"
    UNBAN_PREFIX = "UNBAN_PREFIX"


class BulkActionRequest(BaseModel):
    """Request body for POST /admin/actions."""

    action: BulkAction
    prefix: str | None = Field(default=None, pattern=r"^\d{1,11}$")

    @model_validator(mode="after")
    def prefix_required_for_ban(self) -> "BulkActionRequest":
        if self.action != BulkAction.CLEAR_ALL and not self.prefix:
            raise ValueError("prefix is required for BAN_PREFIX and UNBAN_PREFIX")
        return self


class BulkActionResponse(BaseModel):
    action: BulkAction
    prefix: str | None = None
    affected_count: int
    message: str
