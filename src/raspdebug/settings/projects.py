"""Per-solution project debug settings.

Stored in ``<solution>/.vs/raspberry-projects.json`` as a map from project
id to settings. The project id is the project file path relative to the
solution directory, in POSIX form.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

PROJECT_SETTINGS_FOLDER = ".vs"
PROJECT_SETTINGS_FILE = "raspberry-projects.json"


class ProjectSettings(BaseModel):
    """Debug settings for one project.

    Attributes:
        remote_debug_enabled: False refuses remote launches for the project
        remote_target: Connection name; None means the default connection
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    remote_debug_enabled: bool = True
    remote_target: Optional[str] = None


_SettingsMap = TypeAdapter(Dict[str, ProjectSettings])


class ProjectSettingsStore:
    """Reads and writes the per-solution project map."""

    def __init__(self, solution_dir: Path) -> None:
        self.solution_dir = solution_dir
        self.path = solution_dir / PROJECT_SETTINGS_FOLDER / PROJECT_SETTINGS_FILE

    def project_id(self, project_path: Path) -> str:
        """Key for a project file within this solution."""
        try:
            return project_path.resolve().relative_to(self.solution_dir.resolve()).as_posix()
        except ValueError:
            return project_path.resolve().as_posix()

    def read(self) -> Dict[str, ProjectSettings]:
        """Load the map. A missing file is an empty map.

        Raises:
            ValueError: If the file is not a valid project map
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                return _SettingsMap.validate_python(json.load(f) or {})
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Invalid project settings file {self.path}: {e}") from e

    def write(self, settings: Dict[str, ProjectSettings], known_ids: Iterable[str]) -> None:
        """Persist the map, dropping entries for projects no longer in the solution.

        Args:
            settings: Project id -> settings
            known_ids: Ids of the projects currently in the solution
        """
        known = set(known_ids)
        pruned = {key: value for key, value in settings.items() if key in known}
        dropped = len(settings) - len(pruned)
        if dropped:
            logger.info(f"Pruned {dropped} stale project entries from {self.path}")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {key: value.model_dump(by_alias=True) for key, value in pruned.items()},
                f,
                indent=2,
            )

    def get(self, project_id: str) -> ProjectSettings:
        """Settings for a project, or defaults when it has no entry."""
        return self.read().get(project_id) or ProjectSettings()

    def set(self, project_id: str, value: ProjectSettings, known_ids: Iterable[str]) -> None:
        settings = self.read()
        settings[project_id] = value
        self.write(settings, known_ids)
