"""
Small file helpers shared by the reconciliation steps.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# APT tolerates arbitrary bytes in comments; undecodable bytes survive a
# read/write cycle as surrogates.
ENCODING = "utf-8"
ERRORS = "surrogateescape"


def read_text(path: Path) -> str:
    return path.read_text(encoding=ENCODING, errors=ERRORS)


def write_text(path: Path, content: str) -> None:
    path.write_text(content, encoding=ENCODING, errors=ERRORS)


def matching(directory: Path, pattern: str) -> list[Path]:
    """
    Return the regular files in ``directory`` matching a glob pattern.

    A missing directory or a pattern with no matches yields an empty list,
    never the pattern itself.
    """
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.glob(pattern) if path.is_file())


def write_if_changed(path: Path, content: str, mode: Optional[int] = None) -> bool:
    """
    Write ``content`` to ``path`` unless the file already holds it.

    Returns:
        True if the file was written.
    """
    if path.is_file() and read_text(path) == content:
        if mode is not None:
            path.chmod(mode)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    write_text(path, content)
    if mode is not None:
        path.chmod(mode)
    logger.debug("Wrote %s", path)
    return True


def backup(path: Path) -> Path:
    """
    Copy ``path`` to ``<path>.bak`` before it is modified.
    """
    target = path.with_name(path.name + ".bak")
    shutil.copy2(path, target)
    logger.debug("Backed up %s -> %s", path, target)
    return target


def rename_with_suffix(path: Path, suffix: str) -> Path:
    """
    Rename ``path`` to ``<path><suffix>``, replacing an older file of that name.
    """
    target = path.with_name(path.name + suffix)
    path.replace(target)
    logger.debug("Renamed %s -> %s", path, target)
    return target
