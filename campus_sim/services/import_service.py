"""
Import/merge service.

Parses pasted text with import_parser and upserts the records keyed by
number value. Bad lines are skipped and counted; they never abort the batch.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.models.phone_number import CLAIM_FIELDS, PhoneNumber, ReservationState
from campus_sim.schemas.import_batch import ExcessLineResponse, ImportRequest, ImportResponse
from campus_sim.services.import_parser import (
    ImportLayout,
    ParsedRecord,
    check_column_counts,
    parse_line,
    prepare_lines,
    truncate_columns,
)
from campus_sim.services.org_graph import OrgGraphError, load_org_graph
from campus_sim.services.premium import classify_number
from campus_sim.services.reservation_service import release_values, utcnow
from campus_sim.services.scope import AuthContext

logger = logging.getLogger(__name__)

MAX_EXCESS_PREVIEW = 5


class ImportService:
    """Handles bulk import of phone numbers from pasted text."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def import_batch(self, ctx: AuthContext, data: ImportRequest) -> ImportResponse:
        prepared = prepare_lines(data.text, data.layout)
        log: list[str] = []
        if prepared.header:
            log.append(f"Header detected: {prepared.header}")

        if not prepared.lines:
            if prepared.header:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"code": "NO_DATA_LINES", "message": "No data lines after the header"},
                )
            return ImportResponse(log=log)

        lines = prepared.lines
        if data.layout == ImportLayout.CUSTOM:
            expected = len(data.custom_columns or [])
            check = check_column_counts(lines, expected)
            if check.insufficient:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "code": "INSUFFICIENT_COLUMNS",
                        "message": "Some lines have fewer columns than requested",
                        "lines": check.insufficient,
                        "expected_count": expected,
                    },
                )
            if check.excess and not data.force_import:
                return ImportResponse(
                    needs_confirmation=True,
                    message=f"{len(check.excess)} line(s) have more columns than expected",
                    excess_lines=[
                        ExcessLineResponse(
                            line_number=item.line_number,
                            line=item.line,
                            actual_count=item.actual_count,
                            expected_count=item.expected_count,
                        )
                        for item in check.excess[:MAX_EXCESS_PREVIEW]
                    ],
                    total_excess_count=len(check.excess),
                    expected_count=expected,
                )
            if check.excess:
                lines = [truncate_columns(line, expected) for line in lines]
                log.append(f"Force import: truncated extra columns on {len(check.excess)} line(s)")

        school_id, department_id = await self._resolve_placement(ctx, data)
        log.append(f"Processing {len(lines)} line(s)")

        records: list[ParsedRecord] = []
        skipped = 0
        for line in lines:
            record = parse_line(line, data.layout, data.custom_columns)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        existing = await self._load_existing({record.number_value for record in records})
        seen: dict[str, PhoneNumber] = {}
        created = updated = 0

        for record in records:
            number = seen.get(record.number_value) or existing.get(record.number_value)
            if number is None:
                number = PhoneNumber(
                    number_value=record.number_value,
                    reservation_status=ReservationState.UNRESERVED,
                    school_id=school_id,
                    department_id=department_id,
                )
                self.db.add(number)
                changes = self._merge(number, record)
                created += 1
                log.append(f"Created {record.number_value}{self._summary(number)}")
            else:
                if not ctx.data_filter.covers_number(number.school_id, number.department_id):
                    skipped += 1
                    log.append(f"Skipped {record.number_value}: outside your scope")
                    logger.warning(
                        "Import by %s skipped out-of-scope number %s",
                        ctx.user_id,
                        record.number_value,
                    )
                    continue
                changes = self._merge(number, record)
                updated += 1
                if changes:
                    log.append(f"Updated {record.number_value}: {', '.join(changes)}")
                else:
                    log.append(f"Unchanged {record.number_value}")
            seen[record.number_value] = number

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "code": "DUPLICATE_NUMBER",
                    "message": "A number in this batch was created concurrently; retry the import",
                },
            )

        logger.info(
            "Import by %s (%s): created=%d updated=%d skipped=%d",
            ctx.user_id,
            data.layout.value,
            created,
            updated,
            skipped,
        )
        return ImportResponse(
            created_count=created,
            updated_count=updated,
            skipped_count=skipped,
            log=log,
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _resolve_placement(
        self, ctx: AuthContext, data: ImportRequest
    ) -> tuple[UUID | None, UUID | None]:
        if data.school_id is None and data.department_id is None:
            if not ctx.is_super_admin:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "code": "PLACEMENT_REQUIRED",
                        "message": "Choose a school or department for imported numbers",
                    },
                )
            return None, None

        graph = await load_org_graph(self.db)
        try:
            school_id, department_id = graph.resolve_placement(data.school_id, data.department_id)
        except OrgGraphError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_ORGANIZATION", "message": str(exc)},
            )
        if not ctx.data_filter.covers_number(school_id, department_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "OUT_OF_SCOPE", "message": "Target organization is outside your scope"},
            )
        return school_id, department_id

    async def _load_existing(self, number_values: set[str]) -> dict[str, PhoneNumber]:
        if not number_values:
            return {}
        result = await self.db.execute(
            select(PhoneNumber).where(PhoneNumber.number_value.in_(sorted(number_values)))
        )
        return {number.number_value: number for number in result.scalars().all()}

    def _merge(self, number: PhoneNumber, record: ParsedRecord) -> list[str]:
        """
        Copy the present fields of record onto number.

        Returns a description of every changed field. Absent fields never
        clear existing data; an explicit UNRESERVED status does release.
        Claim data without a status marks the number RESERVED.
        """
        values = record.present_fields()
        values.pop("number_value", None)
        target = record.reservation_status

        if target == ReservationState.UNRESERVED:
            for name in CLAIM_FIELDS:
                values.pop(name, None)
            if number.reservation_status != ReservationState.UNRESERVED:
                values.update(release_values())
        elif target is None and record.has_claim_data:
            values["reservation_status"] = ReservationState.RESERVED

        final_state = values.get("reservation_status", number.reservation_status)
        if final_state != ReservationState.UNRESERVED and number.claimed_at is None:
            values["claimed_at"] = utcnow()

        verdict = classify_number(record.number_value)
        values["is_premium"] = verdict.is_premium
        values["premium_reason"] = verdict.reason

        changes: list[str] = []
        for name, value in values.items():
            current = getattr(number, name, None)
            if current != value:
                if name not in ("claimed_at", "is_premium", "premium_reason") or current is not None:
                    changes.append(f"{name}: {self._fmt(current)} -> {self._fmt(value)}")
                setattr(number, name, value)
        return changes

    @staticmethod
    def _fmt(value: object) -> str:
        if value is None:
            return "empty"
        if isinstance(value, ReservationState):
            return value.value
        return str(value)

    @staticmethod
    def _summary(number: PhoneNumber) -> str:
        parts = []
        if number.customer_name:
            parts.append(f"customer: {number.customer_name}")
        if number.assigned_marketer:
            parts.append(f"marketer: {number.assigned_marketer}")
        if number.is_premium:
            parts.append(f"premium: {number.premium_reason}")
        return f" [{', '.join(parts)}]" if parts else ""
