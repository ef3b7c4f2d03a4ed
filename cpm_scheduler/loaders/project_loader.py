"""
JSON Project Loader.

Reads engine input saved by the application as JSON (camelCase keys).
"""

import json
import logging
from pathlib import Path
from typing import Union

from ..schemas.project import ProjectInput
from ..schemas.validator import ScheduleValidationError, coerce_project

logger = logging.getLogger(__name__)


def load_project(path: Union[str, Path]) -> ProjectInput:
    """
    Load a project from a JSON file.

    Args:
        path: Path to the .json file

    Returns:
        Validated ProjectInput

    Raises:
        ScheduleValidationError: If the file is not valid JSON or fails validation
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ScheduleValidationError(
            f'{path.name} is not valid JSON',
            [f'line {e.lineno}, column {e.colno}: {e.msg}'],
        ) from e

    project = coerce_project(data)
    logger.info(f"Loaded {path.name}: {len(project.activities)} activities, {len(project.wbs)} WBS nodes")
    return project
