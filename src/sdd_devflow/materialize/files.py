"""Filesystem helpers shared by both materializers."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

TEMPLATE_PACKAGE_DIR = Path(__file__).resolve().parent.parent / "template"


@dataclass
class MaterializeResult:
    """What a materialization did, as project-relative POSIX paths.

    ``written`` lists files created, ``skipped`` files left untouched because
    they already existed, ``removed`` template files pruned for the chosen
    stack, and ``notes`` advisory messages for the user.
    """

    project_dir: Path
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def rel(self, path: Path) -> str:
        try:
            return path.relative_to(self.project_dir).as_posix()
        except ValueError:
            return path.as_posix()

    def record(self, path: Path, created: bool) -> None:
        (self.written if created else self.skipped).append(self.rel(path))

    def note(self, message: str) -> None:
        if message not in self.notes:
            self.notes.append(message)


def get_template_dir(template_dir: Path | None = None) -> Path:
    """Return *template_dir*, or the corpus shipped with the package.

    Raises ``FileNotFoundError`` when the directory does not exist.
    """
    path = template_dir if template_dir is not None else TEMPLATE_PACKAGE_DIR
    if not path.is_dir():
        msg = f"Template directory not found: {path}"
        raise FileNotFoundError(msg)
    return path


def write_if_missing(path: Path, content: str) -> bool:
    """Write *content* to *path* only if the file does not yet exist.

    Returns ``True`` when a new file was created, ``False`` when skipped.
    """
    if path.exists():
        logger.debug("Skipping existing file: %s", path)
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Created: %s", path)
    return True


def copy_file_if_missing(src: Path, dst: Path) -> bool:
    """Copy *src* to *dst* only if *dst* does not yet exist."""
    if dst.exists():
        logger.debug("Skipping existing file: %s", dst)
        return False
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)
    logger.info("Created: %s", dst)
    return True


def merge_copy_tree(
    src: Path,
    dst: Path,
    result: MaterializeResult,
    *,
    exclude: Callable[[Path], bool] | None = None,
) -> None:
    """Copy every file under *src* into *dst*, never overwriting.

    Directories are created as needed.  *exclude* receives each source path
    relative to *src*; excluded files are not copied.
    """
    for source in sorted(src.rglob("*")):
        if not source.is_file():
            continue
        relative = source.relative_to(src)
        if exclude is not None and exclude(relative):
            logger.debug("Excluded from copy: %s", relative)
            continue
        target = dst / relative
        result.record(target, copy_file_if_missing(source, target))


def remove_path(path: Path, result: MaterializeResult) -> None:
    """Delete a file or directory tree if it exists."""
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()
    else:
        return
    logger.debug("Removed: %s", path)
    result.removed.append(result.rel(path))
