"""Named tokens and named regions for the template corpus.

Tokens are ``{{ name }}`` and are resolved from a mapping at render time.
Regions are line-delimited blocks that can be dropped, kept or rewritten::

    <!-- sdd:begin backend -->
    ...
    <!-- sdd:end backend -->

YAML, TOML and env files use the comment form ``# sdd:begin NAME`` /
``# sdd:end NAME``.  Several regions may share a name; an operation applies
to all of them.  Regions of different names may nest.

Rendering is strict: a token missing from the mapping, an operation on a
region the document does not contain, or unbalanced markers all raise
``TemplateError``.  A token mapped to ``None`` removes the whole line that
contains it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\{\{\s*([a-z][a-z0-9_]*)\s*\}\}")
MARKER_RE = re.compile(
    r"^[ \t]*(?:<!--|#)[ \t]*sdd:(begin|end)[ \t]+([a-z][a-z0-9_-]*)[ \t]*(?:-->)?[ \t]*$"
)


class TemplateError(ValueError):
    """A template and the values or operations applied to it disagree."""


@dataclass(frozen=True)
class Region:
    """Line span of one region, marker lines included."""

    name: str
    begin: int
    end: int


def find_tokens(text: str) -> set[str]:
    """Return the names of all tokens in *text*."""
    return set(TOKEN_RE.findall(text))


def has_markup(text: str) -> bool:
    """True if *text* contains any token or region marker."""
    if TOKEN_RE.search(text):
        return True
    return any(MARKER_RE.match(line) for line in text.splitlines())


def _parse_regions(lines: list[str], source: str) -> list[Region]:
    regions: list[Region] = []
    stack: list[tuple[str, int]] = []
    for index, line in enumerate(lines):
        match = MARKER_RE.match(line.rstrip("\r\n"))
        if match is None:
            continue
        kind, name = match.groups()
        if kind == "begin":
            if any(open_name == name for open_name, _ in stack):
                msg = f"{source}: region '{name}' nested inside itself (line {index + 1})"
                raise TemplateError(msg)
            stack.append((name, index))
            continue
        if not stack or stack[-1][0] != name:
            msg = f"{source}: unexpected 'sdd:end {name}' (line {index + 1})"
            raise TemplateError(msg)
        _, begin = stack.pop()
        regions.append(Region(name, begin, index))
    if stack:
        name, begin = stack[-1]
        msg = f"{source}: region '{name}' is never closed (line {begin + 1})"
        raise TemplateError(msg)
    return sorted(regions, key=lambda r: r.begin)


class Document:
    """A template file being shaped for one materialization.

    Region operations mutate the document and return it so they can be
    chained; ``render`` produces the final text.
    """

    def __init__(self, text: str, source: str = "<template>") -> None:
        self.source = source
        self._lines = text.splitlines(keepends=True)
        _parse_regions(self._lines, source)

    @classmethod
    def load(cls, path: Path, source: str | None = None) -> Document:
        return cls(path.read_text(encoding="utf-8"), source or path.name)

    @property
    def text(self) -> str:
        return "".join(self._lines)

    def region_names(self) -> list[str]:
        """Distinct region names in document order."""
        names: list[str] = []
        for region in _parse_regions(self._lines, self.source):
            if region.name not in names:
                names.append(region.name)
        return names

    def has_region(self, name: str) -> bool:
        return name in self.region_names()

    def _regions(self, name: str) -> list[Region]:
        found = [r for r in _parse_regions(self._lines, self.source) if r.name == name]
        if not found:
            msg = f"{self.source}: no region named '{name}'"
            raise TemplateError(msg)
        # Bottom-up so earlier spans stay valid while editing.
        return sorted(found, key=lambda r: r.begin, reverse=True)

    def drop(self, name: str) -> Document:
        """Remove every region called *name*, content included."""
        for region in self._regions(name):
            del self._lines[region.begin : region.end + 1]
        return self

    def keep(self, name: str) -> Document:
        """Keep the content of every region called *name*, removing its markers."""
        for region in self._regions(name):
            del self._lines[region.end]
            del self._lines[region.begin]
        return self

    def replace(self, name: str, content: str) -> Document:
        """Replace the content of every region called *name*.

        The markers stay in place, so the region can still be addressed.
        """
        new_lines = content.splitlines(keepends=True)
        if new_lines and not new_lines[-1].endswith("\n"):
            new_lines[-1] += "\n"
        for region in self._regions(name):
            self._lines[region.begin + 1 : region.end] = new_lines
        return self

    def region_text(self, name: str) -> str:
        """Content of the first region called *name*."""
        region = self._regions(name)[-1]
        return "".join(self._lines[region.begin + 1 : region.end])

    def render(self, values: Mapping[str, object | None]) -> str:
        """Strip region markers and resolve every token from *values*."""
        _parse_regions(self._lines, self.source)

        missing = sorted(find_tokens(self.text) - set(values))
        if missing:
            msg = f"{self.source}: no value for token(s) {', '.join(missing)}"
            raise TemplateError(msg)

        out: list[str] = []
        for line in self._lines:
            if MARKER_RE.match(line.rstrip("\r\n")):
                continue
            names = TOKEN_RE.findall(line)
            if not names:
                out.append(line)
                continue
            if any(values[n] is None for n in names):
                logger.debug("%s: dropping line with empty token: %s", self.source, line.strip())
                continue
            out.append(TOKEN_RE.sub(lambda m: str(values[m.group(1)]), line))
        return "".join(out)


def render_text(text: str, values: Mapping[str, object | None], source: str = "<template>") -> str:
    """Render *text* without any region operations."""
    return Document(text, source).render(values)
