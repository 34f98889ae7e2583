"""
Organization graph.

An in-memory arena of schools and departments keyed by id. The two-level
shape is checked once when the arena is built, so queries never have to
re-validate parent pointers.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_sim.models.organization import Organization, OrgKind


class OrgGraphError(ValueError):
    """Raised when an edge would break the school/department shape."""


@dataclass(frozen=True)
class OrgNode:
    id: UUID
    name: str
    kind: OrgKind
    parent_id: UUID | None = None
    description: str | None = None

    @property
    def is_school(self) -> bool:
        return self.kind == OrgKind.SCHOOL


class OrgGraph:
    """Read-only two-level organization tree."""

    def __init__(self, nodes: Iterable[OrgNode]) -> None:
        self._nodes: dict[UUID, OrgNode] = {node.id: node for node in nodes}
        self._children: dict[UUID, list[UUID]] = defaultdict(list)
        for node in self._nodes.values():
            self._check_edge(node.kind, node.parent_id, name=node.name)
            if node.parent_id is not None:
                self._children[node.parent_id].append(node.id)

    @classmethod
    def from_rows(cls, rows: Iterable[Organization]) -> OrgGraph:
        return cls(
            OrgNode(
                id=row.id,
                name=row.name,
                kind=row.kind,
                parent_id=row.parent_id,
                description=row.description,
            )
            for row in rows
        )

    # -----------------------------------------------------------------------
    # Edge validation
    # -----------------------------------------------------------------------

    def _check_edge(self, kind: OrgKind, parent_id: UUID | None, name: str = "") -> None:
        if kind == OrgKind.SCHOOL:
            if parent_id is not None:
                raise OrgGraphError(f"School {name!r} cannot have a parent")
            return

        if parent_id is None:
            raise OrgGraphError(f"Department {name!r} must belong to a school")
        parent = self._nodes.get(parent_id)
        if parent is None:
            raise OrgGraphError(f"Department {name!r} references unknown parent {parent_id}")
        if parent.kind != OrgKind.SCHOOL:
            raise OrgGraphError(f"Department {name!r} must be placed under a school")

    def validate_new(self, kind: OrgKind, parent_id: UUID | None) -> None:
        """Check that a node of this kind may be attached under parent_id."""
        self._check_edge(kind, parent_id)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get(self, org_id: UUID) -> OrgNode | None:
        return self._nodes.get(org_id)

    def exists(self, org_id: UUID) -> bool:
        return org_id in self._nodes

    def kind_of(self, org_id: UUID) -> OrgKind | None:
        node = self._nodes.get(org_id)
        return node.kind if node else None

    def parent_of(self, org_id: UUID) -> OrgNode | None:
        node = self._nodes.get(org_id)
        if node is None or node.parent_id is None:
            return None
        return self._nodes.get(node.parent_id)

    def children_of(self, org_id: UUID) -> list[OrgNode]:
        return [self._nodes[child_id] for child_id in self._children.get(org_id, [])]

    def departments_under(self, school_ids: Iterable[UUID]) -> set[UUID]:
        result: set[UUID] = set()
        for school_id in school_ids:
            result.update(self._children.get(school_id, []))
        return result

    def schools(self) -> list[OrgNode]:
        return sorted(
            (node for node in self._nodes.values() if node.is_school),
            key=lambda node: node.name,
        )

    def hierarchy(self) -> list[tuple[OrgNode, list[OrgNode]]]:
        """Schools with their departments, both sorted by name."""
        return [
            (school, sorted(self.children_of(school.id), key=lambda node: node.name))
            for school in self.schools()
        ]

    def resolve_placement(
        self, school_id: UUID | None, department_id: UUID | None
    ) -> tuple[UUID | None, UUID | None]:
        """
        Normalize a (school, department) pair for a phone number.

        A department implies its parent school; naming a different school
        alongside it is an error.
        """
        if department_id is not None:
            department = self._nodes.get(department_id)
            if department is None or department.is_school:
                raise OrgGraphError(f"Unknown department {department_id}")
            if school_id is not None and school_id != department.parent_id:
                raise OrgGraphError("Department does not belong to the given school")
            return department.parent_id, department.id

        if school_id is not None:
            school = self._nodes.get(school_id)
            if school is None or not school.is_school:
                raise OrgGraphError(f"Unknown school {school_id}")
        return school_id, None

    def missing_parent_schools(self, org_ids: Iterable[UUID]) -> list[OrgNode]:
        """
        Parent schools of the departments in org_ids that are not themselves
        in org_ids, in first-seen order without duplicates.
        """
        ordered = list(org_ids)
        wanted = set(ordered)
        missing: list[OrgNode] = []
        seen: set[UUID] = set()
        for org_id in ordered:
            node = self._nodes.get(org_id)
            if node is None or node.is_school or node.parent_id is None:
                continue
            if node.parent_id in wanted or node.parent_id in seen:
                continue
            parent = self._nodes.get(node.parent_id)
            if parent is not None:
                seen.add(parent.id)
                missing.append(parent)
        return missing


async def load_org_graph(db: AsyncSession) -> OrgGraph:
    """Load every organization into a fresh graph."""
    result = await db.execute(select(Organization))
    return OrgGraph.from_rows(result.scalars().all())
