"""
Import schemas.

Request/response models for POST /admin/imports.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from campus_sim.services.import_parser import CUSTOM_COLUMNS, ImportLayout


class ImportRequest(BaseModel):
    text: str = Field(min_length=1)
    layout: ImportLayout = ImportLayout.TABLE1
    custom_columns: list[str] | None = None
    force_import: bool = False
    school_id: UUID | None = None
    department_id: UUID | None = None

    @field_validator("custom_columns")
    @classmethod
    def known_columns(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        unknown = [column for column in value if column not in CUSTOM_COLUMNS]
        if unknown:
            raise ValueError(f"Unknown columns: {', '.join(unknown)}")
        return value

    @model_validator(mode="after")
    def custom_layout_needs_columns(self) -> "ImportRequest":
        if self.layout == ImportLayout.CUSTOM:
            if not self.custom_columns or "number_value" not in self.custom_columns:
                raise ValueError("CUSTOM layout needs custom_columns including number_value")
        return self


class ExcessLineResponse(BaseModel):
    line_number: int
    line: str
    actual_count: int
    expected_count: int


class ImportResponse(BaseModel):
    """
    Import outcome.

    When needs_confirmation is set nothing was written: some lines carry
    more columns than requested. Resend with force_import to truncate them.
    """

    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    log: list[str] = Field(default_factory=list)
    needs_confirmation: bool = False
    message: str | None = None
    excess_lines: list[ExcessLineResponse] = Field(default_factory=list)
    total_excess_count: int = 0
    expected_count: int | None = None
