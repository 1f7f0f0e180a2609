from __future__ import annotations

from typing import Dict, Iterable, Optional
from uuid import UUID

import structlog

from .errors import EpicNotFound, ProjectMismatch, SelfReference
from .models import normalize_project
from .repositories import Repository

log = structlog.get_logger()


# PUBLIC_INTERFACE
class EpicProjectResolver:
    """
    Keeps a record's project consistent with its epic.

    Epics are plain records looked up by id in the same repository; only one
    level of linkage is checked (no self-loop). Longer chains such as
    A -> B -> A are not detected.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def resolve(
        self,
        project: Optional[str],
        epic_id: Optional[UUID],
        *,
        record_id: Optional[UUID] = None,
    ) -> Optional[str]:
        """
        Return the project the record should carry.

        Rules:
        - no epic: `project` is used as given
        - epic equal to `record_id`: SelfReference
        - epic missing from the repository: EpicNotFound
        - `project` set and different from the epic's project: ProjectMismatch
        - `project` unset: the epic's project is inherited
        """
        project = normalize_project(project)
        if epic_id is None:
            return project

        if record_id is not None and epic_id == record_id:
            raise SelfReference()

        epic = await self._repo.get(epic_id)
        if epic is None:
            log.debug("epic lookup failed", epic_id=str(epic_id))
            raise EpicNotFound(epic_id)

        if project is None:
            return epic.project
        if project != epic.project:
            raise ProjectMismatch(project, epic.project)
        return project

    async def titles(self, epic_ids: Iterable[UUID]) -> Dict[UUID, str]:
        """Map each existing epic id to its title using one repository call."""
        ids = {i for i in epic_ids if i is not None}
        if not ids:
            return {}
        epics = await self._repo.get_many(ids)
        return {epic.id: epic.title for epic in epics}
