"""flatc runner - invokes the FlatBuffers compiler for each needed language front-end"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import FlatcError

logger = logging.getLogger(__name__)

FLATC_ENV_VAR = "XPLATGEN_FLATC_PATH"

# Target / impl language -> (flatc flag, output subdirectory)
TARGET_FLATC_LANGS = {
    "android": ("--kotlin", "flatbuffers/kotlin"),
    "ios": ("--swift", "flatbuffers/swift"),
    "macos": ("--swift", "flatbuffers/swift"),
    "web": ("--ts", "flatbuffers/ts"),
}

IMPL_FLATC_LANGS = {
    "cpp": ("--cpp", "flatbuffers/cpp"),
    "rust": ("--rust", "flatbuffers/rust"),
    "go": ("--go", "flatbuffers/go"),
}


@dataclass
class FlatcConfig:
    """Inputs to one flatc step"""
    flatc_path: str
    fbs_files: list[str]
    output_dir: str
    targets: list[str] = field(default_factory=list)
    impl_lang: str = ""
    dry_run: bool = False


def find_flatc(explicit: str = "") -> Optional[str]:
    """Locate flatc: explicit path, then $XPLATGEN_FLATC_PATH, then PATH.

    Raises:
        FlatcError: an explicit path was given but does not exist
    """
    if explicit:
        if not Path(explicit).exists():
            raise FlatcError(f"flatc not found at {explicit}")
        return explicit
    if env_path := os.environ.get(FLATC_ENV_VAR):
        if Path(env_path).exists():
            return env_path
        logger.warning(f"{FLATC_ENV_VAR} points to missing file {env_path}")
    return shutil.which("flatc")


def flatc_langs(targets: list[str], impl_lang: str) -> list[tuple[str, str]]:
    """De-duplicated (flag, subdir) pairs, targets first"""
    langs = [TARGET_FLATC_LANGS[t] for t in targets if t in TARGET_FLATC_LANGS]
    if impl_lang in IMPL_FLATC_LANGS:
        langs.append(IMPL_FLATC_LANGS[impl_lang])
    return list(dict.fromkeys(langs))


def flatc_commands(config: FlatcConfig) -> list[list[str]]:
    commands = []
    for flag, subdir in flatc_langs(config.targets, config.impl_lang):
        out_dir = str(Path(config.output_dir) / subdir)
        commands.append([config.flatc_path, flag, "-o", out_dir, *config.fbs_files])
    return commands


def run_flatc(config: FlatcConfig) -> int:
    """Run flatc once per language; returns the number of invocations executed.

    Raises:
        FlatcError: flatc could not be started or exited non-zero
    """
    commands = flatc_commands(config)
    if config.dry_run:
        for cmd in commands:
            print(f"  Would run: {' '.join(cmd)}")
        return 0

    for cmd in commands:
        logger.info(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise FlatcError(f"running {cmd[0]}: {e}") from e
        if result.returncode != 0:
            raise FlatcError(f"flatc {cmd[1]} failed with exit code {result.returncode}\n"
                             f"{result.stdout}{result.stderr}")
        if result.stdout:
            logger.debug(result.stdout.rstrip())
    return len(commands)
