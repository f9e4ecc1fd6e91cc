"""Artifact writer - places generated files on disk without clobbering scaffolds"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .errors import OutputError
from .types import Artifact

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Outcome of writing one batch of artifacts"""
    written: list[Path] = field(default_factory=list)
    preserved: list[Path] = field(default_factory=list)
    planned: list[Path] = field(default_factory=list)


def artifact_path(artifact: Artifact, output_dir: Union[str, Path]) -> Path:
    """Destination of an artifact; project files live beside the output directory"""
    output_dir = Path(output_dir)
    base = output_dir.parent if artifact.project_file else output_dir
    return base / artifact.path


def clean_output(output_dir: Union[str, Path], dry_run: bool = False):
    output_dir = Path(output_dir)
    if dry_run or not output_dir.exists():
        return
    logger.info(f"Removing {output_dir}")
    try:
        shutil.rmtree(output_dir)
    except OSError as e:
        raise OutputError(f"cleaning {output_dir}: {e}") from e


def write_artifacts(artifacts: list[Artifact], output_dir: Union[str, Path],
                    dry_run: bool = False) -> WriteResult:
    """Write every artifact; scaffolds are written only when absent.

    Raises:
        OutputError: a directory or file could not be written
    """
    result = WriteResult()
    for artifact in artifacts:
        path = artifact_path(artifact, output_dir)

        if artifact.scaffold and path.exists():
            logger.debug(f"Scaffold exists, skipped: {path}")
            result.preserved.append(path)
            continue

        if dry_run:
            result.planned.append(path)
            continue

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8", newline="\n") as f:
                f.write(artifact.content)
        except OSError as e:
            raise OutputError(f"writing {path}: {e}") from e

        logger.debug(f"Wrote: {path}")
        result.written.append(path)
    return result
