"""Decide whether a reported position falls inside a diff."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field


class Mode(enum.IntEnum):
    """How results are filtered against a diff."""

    DEFAULT = 0
    ADDED = 1
    DIFF_CONTEXT = 2
    FILE = 3
    NO_FILTER = 4

    @classmethod
    def parse(cls, value):
        """Return the mode named by ``value``; raise ValueError if unknown."""
        try:
            return _MODE_BY_NAME[value]
        except KeyError:
            raise ValueError(f"invalid mode name: {value}") from None

    def __str__(self):
        return _MODE_LABELS[self]


_MODE_LABELS = {
    Mode.DEFAULT: "default",
    Mode.ADDED: "added",
    Mode.DIFF_CONTEXT: "diff_context",
    Mode.FILE: "file",
    Mode.NO_FILTER: "nofilter",
}

_MODE_BY_NAME = {label: mode for mode, label in _MODE_LABELS.items()}
_MODE_BY_NAME[""] = Mode.DEFAULT


class LineType(enum.Enum):
    """Kind of a line inside a diff hunk."""

    UNCHANGED = "unchanged"
    ADDED = "added"
    DELETED = "deleted"


@dataclass
class Line:
    """One line of a hunk. Line numbers are 0 where the side has no line."""

    type: LineType
    content: str
    lnum_old: int = 0
    lnum_new: int = 0


@dataclass
class Hunk:
    """A hunk of a unified diff."""

    start_line_old: int = 0
    line_length_old: int = 0
    start_line_new: int = 0
    line_length_new: int = 0
    lines: list[Line] = field(default_factory=list)


@dataclass
class FileDiff:
    """The diff of one file."""

    path_old: str = ""
    path_new: str = ""
    hunks: list[Hunk] = field(default_factory=list)


def _to_slash(path):
    return path if os.sep == "/" else path.replace(os.sep, "/")


def _split_path_list(path):
    return _to_slash(path).split("/")


def _contains(path, base):
    parts = _split_path_list(path)
    base_parts = _split_path_list(base)
    return len(parts) >= len(base_parts) and parts[: len(base_parts)] == base_parts


def normalize_diff_path(diffpath, strip):
    """Normalise a path found in a diff, dropping ``strip`` leading components."""
    if diffpath == "/dev/null":
        return ""
    path = diffpath
    if strip > 0 and not os.path.isabs(path):
        parts = _split_path_list(path)
        if len(parts) > strip:
            path = os.path.join(*parts[strip:])
    return _to_slash(os.path.normpath(path))


def normalize_path(path, workdir, project_rel_path):
    """Normalise a reported path relative to the project root."""
    path = os.path.normpath(path)
    if path == ".":
        return ""
    if os.path.isabs(path) and workdir and _contains(path, workdir):
        try:
            path = os.path.relpath(path, workdir)
        except ValueError:
            pass
    if not os.path.isabs(path) and project_rel_path:
        path = os.path.join(project_rel_path, path)
    return _to_slash(path)


class DiffFilter:
    """Looks up paths and line numbers in a set of file diffs."""

    def __init__(self, filediffs, strip, cwd, mode, project_rel_path=""):
        self.strip = strip
        self.cwd = cwd
        self.mode = Mode(mode)
        # Without a working directory the project-relative path has no meaning.
        self.project_rel_path = project_rel_path if cwd else ""
        self._files: dict[str, FileDiff] = {}
        self._lines: dict[str, dict[int, Line]] = {}
        for filediff in filediffs or ():
            path = normalize_diff_path(filediff.path_new, strip)
            self._files[path] = filediff
            lines = self._lines.setdefault(path, {})
            for hunk in filediff.hunks:
                for line in hunk.lines:
                    if line.lnum_new > 0:
                        lines[line.lnum_new] = line

    def _normalize(self, path):
        return normalize_path(path, self.cwd, self.project_rel_path)

    def should_report(self, path, lnum):
        """Return (report?, file diff or None, diff line or None)."""
        npath = self._normalize(path)
        filediff = self._files.get(npath)
        lines = self._lines.get(npath)
        if lines is None:
            return self.mode == Mode.NO_FILTER, filediff, None
        line = lines.get(lnum)
        if line is None:
            return self.mode in (Mode.NO_FILTER, Mode.FILE), filediff, None
        return self._is_significant(line), filediff, line

    def diff_line(self, path, lnum):
        """Return the diff line at new-side ``lnum`` of ``path``, or None."""
        return self._lines.get(self._normalize(path), {}).get(lnum)

    def _is_significant(self, line):
        if self.mode in (Mode.DIFF_CONTEXT, Mode.FILE, Mode.NO_FILTER):
            return True
        return line.type is LineType.ADDED