# src/content/roles.py — v1
"""Role and task definitions stored as markdown under the askpipe home.

A name is looked up in roles/<name>.md first, then tasks/<name>.md.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from askpipe.content.errors import RoleNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    body: str
    is_task: bool
    path: Path


class RoleLibrary:
    """Resolve role/task names against the roles and tasks directories."""

    def __init__(self, roles_dir: Path, tasks_dir: Path) -> None:
        self._roles_dir = Path(roles_dir).expanduser()
        self._tasks_dir = Path(tasks_dir).expanduser()

    def role_path(self, name: str) -> Path:
        return self._roles_dir / f"{name}.md"

    def task_path(self, name: str) -> Path:
        return self._tasks_dir / f"{name}.md"

    def load(self, name: str) -> RoleDefinition:
        """Load one definition.

        Raises:
            RoleNotFoundError: If neither file exists or both are unreadable.
        """
        for path, is_task in ((self.role_path(name), False), (self.task_path(name), True)):
            if not path.is_file():
                continue
            try:
                body = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Failed to read %s file %s: %s", "task" if is_task else "role", path, exc)
                continue
            logger.info("Loaded %s '%s' from %s", "task" if is_task else "role", name, path)
            return RoleDefinition(name=name, body=body, is_task=is_task, path=path)

        raise RoleNotFoundError(name, [str(self.role_path(name)), str(self.task_path(name))])

    def load_all(self, names: list[str]) -> list[RoleDefinition]:
        """Load definitions in the given order, skipping missing names with a warning."""
        items: list[RoleDefinition] = []
        for name in names:
            try:
                items.append(self.load(name))
            except RoleNotFoundError as exc:
                logger.warning("%s", exc)
        logger.info("Loaded %d of %d role(s)/task(s)", len(items), len(names))
        return items
