"""Diagnostics and their filtering against a diff."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from reviewpup.difffilter import DiffFilter, normalize_diff_path, normalize_path


class Severity(enum.IntEnum):
    """Severity of a diagnostic."""

    UNKNOWN_SEVERITY = 0
    ERROR = 1
    WARNING = 2
    INFO = 3


@dataclass
class Position:
    """A line and column; 0 means not set."""

    line: int = 0
    column: int = 0


@dataclass
class Range:
    """A span between two positions."""

    start: Position = field(default_factory=Position)
    end: Position = field(default_factory=Position)


@dataclass
class Location:
    """A path and a range in it."""

    path: str = ""
    range: Range = field(default_factory=Range)


@dataclass
class Code:
    """A rule code with an optional documentation link."""

    value: str = ""
    url: str = ""


@dataclass
class Source:
    """The tool that produced a diagnostic."""

    name: str = ""
    url: str = ""


@dataclass
class Suggestion:
    """A proposed replacement text for a range."""

    range: Range = field(default_factory=Range)
    text: str = ""


@dataclass
class Diagnostic:
    """One finding reported by a tool."""

    message: str = ""
    location: Location = field(default_factory=Location)
    severity: Severity = Severity.UNKNOWN_SEVERITY
    source: Source = field(default_factory=Source)
    code: Code = field(default_factory=Code)
    suggestions: list[Suggestion] = field(default_factory=list)
    original_output: str = ""


@dataclass
class FilteredDiagnostic:
    """A diagnostic with the outcome of filtering it against a diff."""

    diagnostic: Diagnostic
    should_report: bool = False
    in_diff_file: bool = False
    in_diff_context: bool = False
    first_suggestion_in_diff_context: bool = False
    source_lines: dict[int, str] = field(default_factory=dict)
    old_path: str = ""
    old_line: int = 0


def filter_check(results, filediffs, strip, cwd, mode):
    """Filter diagnostics by a diff.

    Nothing is dropped: results outside the diff get ``should_report`` False.
    The location path of every diagnostic is normalised in place.
    """
    df = DiffFilter(filediffs, strip, cwd, mode)
    checks = []
    for result in results:
        check = FilteredDiagnostic(diagnostic=result)
        loc = result.location
        loc.path = normalize_path(loc.path, cwd, "")
        start_line = loc.range.start.line
        end_line = loc.range.end.line or start_line
        check.in_diff_context = True
        for lnum in range(start_line, end_line + 1):
            should_report, difffile, diffline = df.should_report(loc.path, lnum)
            check.should_report = check.should_report or should_report
            check.in_diff_context = check.in_diff_context and diffline is not None
            if diffline is not None:
                check.source_lines[lnum] = diffline.content
            if difffile is not None:
                check.in_diff_file = True
                if lnum == start_line:
                    check.old_path, check.old_line = get_old_position(
                        difffile, strip, loc.path, lnum
                    )
        for index, suggestion in enumerate(result.suggestions):
            in_context = True
            for lnum in range(suggestion.range.start.line, suggestion.range.end.line + 1):
                diffline = df.diff_line(loc.path, lnum)
                if diffline is not None:
                    check.source_lines[lnum] = diffline.content
                else:
                    in_context = False
            if index == 0:
                check.first_suggestion_in_diff_context = in_context
        checks.append(check)
    return checks


def get_old_position(filediff, strip, new_path, new_line):
    """Map a new-side line to (old path, old line); ("", 0) if not applicable."""
    if filediff is None:
        return "", 0
    if normalize_diff_path(filediff.path_new, strip) != new_path:
        return "", 0
    old_path = normalize_diff_path(filediff.path_old, strip)
    delta = 0
    for hunk in filediff.hunks:
        if new_line < hunk.start_line_new:
            break
        delta += hunk.line_length_old - hunk.line_length_new
        for line in hunk.lines:
            if line.lnum_new == new_line:
                return old_path, line.lnum_old
    return old_path, new_line + delta