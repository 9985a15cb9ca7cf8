"""Request and response types exchanged with the check service."""

from __future__ import annotations

from dataclasses import dataclass, field

from reviewpup.difffilter import Mode
from reviewpup.filtering import (
    Code,
    Diagnostic,
    FilteredDiagnostic,
    Location,
    Position,
    Range,
    Severity,
    Source,
    Suggestion,
)

_EMPTY = ("", 0, None, {}, [])


def _compact(data):
    return {key: value for key, value in data.items() if value not in _EMPTY}


def _position_to_dict(pos):
    return _compact({"line": pos.line, "column": pos.column})


def _position_from_dict(data):
    data = data or {}
    return Position(line=int(data.get("line", 0)), column=int(data.get("column", 0)))


def _range_to_dict(rng):
    return _compact({"start": _position_to_dict(rng.start), "end": _position_to_dict(rng.end)})


def _range_from_dict(data):
    data = data or {}
    return Range(start=_position_from_dict(data.get("start")), end=_position_from_dict(data.get("end")))


def _severity_from(value):
    if isinstance(value, str):
        return Severity[value]
    return Severity(int(value))


def _diagnostic_to_dict(diag):
    return _compact(
        {
            "message": diag.message,
            "location": _compact(
                {"path": diag.location.path, "range": _range_to_dict(diag.location.range)}
            ),
            "severity": int(diag.severity),
            "source": _compact({"name": diag.source.name, "url": diag.source.url}),
            "code": _compact({"value": diag.code.value, "url": diag.code.url}),
            "suggestions": [
                _compact({"range": _range_to_dict(s.range), "text": s.text})
                for s in diag.suggestions
            ],
            "original_output": diag.original_output,
        }
    )


def _diagnostic_from_dict(data):
    location = data.get("location") or {}
    source = data.get("source") or {}
    code = data.get("code") or {}
    return Diagnostic(
        message=data.get("message", ""),
        location=Location(
            path=location.get("path", ""), range=_range_from_dict(location.get("range"))
        ),
        severity=_severity_from(data.get("severity", 0)),
        source=Source(name=source.get("name", ""), url=source.get("url", "")),
        code=Code(value=code.get("value", ""), url=code.get("url", "")),
        suggestions=[
            Suggestion(range=_range_from_dict(s.get("range")), text=s.get("text", ""))
            for s in data.get("suggestions") or ()
        ],
        original_output=data.get("original_output", ""),
    )


def _filtered_to_dict(check):
    return {
        "Diagnostic": _diagnostic_to_dict(check.diagnostic),
        "ShouldReport": check.should_report,
        "InDiffFile": check.in_diff_file,
        "InDiffContext": check.in_diff_context,
        "FirstSuggestionInDiffContext": check.first_suggestion_in_diff_context,
        "SourceLines": {str(k): v for k, v in check.source_lines.items()},
        "OldPath": check.old_path,
        "OldLine": check.old_line,
    }


def _filtered_from_dict(data):
    return FilteredDiagnostic(
        diagnostic=_diagnostic_from_dict(data.get("Diagnostic") or {}),
        should_report=bool(data.get("ShouldReport", False)),
        in_diff_file=bool(data.get("InDiffFile", False)),
        in_diff_context=bool(data.get("InDiffContext", False)),
        first_suggestion_in_diff_context=bool(data.get("FirstSuggestionInDiffContext", False)),
        source_lines={int(k): v for k, v in (data.get("SourceLines") or {}).items()},
        old_path=data.get("OldPath", ""),
        old_line=int(data.get("OldLine", 0)),
    )


@dataclass
class Annotation:
    """A finding attached to a commit; the flat fields serve older clients."""

    diagnostic: Diagnostic | None = None
    path: str = ""
    line: int = 0
    message: str = ""
    raw_message: str = ""

    def to_dict(self):
        data = {}
        if self.diagnostic is not None:
            data["diagnostic"] = _diagnostic_to_dict(self.diagnostic)
        data.update(
            _compact(
                {
                    "path": self.path,
                    "line": self.line,
                    "message": self.message,
                    "raw_message": self.raw_message,
                }
            )
        )
        return data

    @classmethod
    def from_dict(cls, data):
        diag = data.get("diagnostic")
        return cls(
            diagnostic=None if diag is None else _diagnostic_from_dict(diag),
            path=data.get("path", ""),
            line=int(data.get("line", 0)),
            message=data.get("message", ""),
            raw_message=data.get("raw_message", ""),
        )


@dataclass
class CheckRequest:
    """A request to report annotations as a GitHub check run."""

    sha: str = ""
    pull_request: int = 0
    owner: str = ""
    repo: str = ""
    branch: str = ""
    annotations: list[Annotation] = field(default_factory=list)
    name: str = ""
    level: str = ""
    outside_diff: bool = False
    filter_mode: Mode = Mode.DEFAULT

    def to_dict(self):
        data = _compact(
            {
                "sha": self.sha,
                "pull_request": self.pull_request,
                "owner": self.owner,
                "repo": self.repo,
                "branch": self.branch,
                "annotations": [a.to_dict() for a in self.annotations],
                "name": self.name,
            }
        )
        data["level"] = self.level
        data["outside_diff"] = self.outside_diff
        data["filter_mode"] = int(self.filter_mode)
        return data

    @classmethod
    def from_dict(cls, data):
        mode = data.get("filter_mode", 0)
        return cls(
            sha=data.get("sha", ""),
            pull_request=int(data.get("pull_request", 0)),
            owner=data.get("owner", ""),
            repo=data.get("repo", ""),
            branch=data.get("branch", ""),
            annotations=[Annotation.from_dict(a) for a in data.get("annotations") or ()],
            name=data.get("name", ""),
            level=data.get("level", ""),
            outside_diff=bool(data.get("outside_diff", False)),
            filter_mode=Mode.parse(mode) if isinstance(mode, str) else Mode(int(mode)),
        )


@dataclass
class CheckResponse:
    """The outcome of a check request."""

    report_url: str = ""
    checked_results: list[FilteredDiagnostic] | None = None
    conclusion: str = ""

    def to_dict(self):
        data = _compact({"report_url": self.report_url})
        data["checked_results"] = (
            None
            if self.checked_results is None
            else [_filtered_to_dict(c) for c in self.checked_results]
        )
        data.update(_compact({"conclusion": self.conclusion}))
        return data

    @classmethod
    def from_dict(cls, data):
        results = data.get("checked_results")
        return cls(
            report_url=data.get("report_url", ""),
            checked_results=None if results is None else [_filtered_from_dict(r) for r in results],
            conclusion=data.get("conclusion", ""),
        )