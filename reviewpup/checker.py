"""Report diagnostics to GitHub as a check run."""

from __future__ import annotations

import abc
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import requests

from reviewpup.difffilter import FileDiff, Hunk, Line, LineType, Mode
from reviewpup.filtering import Diagnostic, Location, Position, Range, Severity, filter_check
from reviewpup.models import CheckResponse

log = logging.getLogger(__name__)

# The check-run API rejects outputs longer than this many characters.
_MAX_ALLOWED_SIZE = 65535
# The check-run API accepts at most this many annotations per request.
_MAX_ANNOTATIONS_PER_REQUEST = 50

_DEFAULT_NAME = "reviewpup"
_CUTOFF_MSG = "... (Too many findings. Dropped some findings)"
_DETAILS_CLOSE = "</details>"


class GitHubError(Exception):
    """An error response from the GitHub API."""

    def __init__(self, status_code, message=""):
        super().__init__(f"GitHub API error {status_code}: {message}".rstrip(": "))
        self.status_code = status_code
        self.message = message


@dataclass
class CheckRun:
    """A check run as returned by GitHub."""

    id: int | None = None
    html_url: str = ""


@dataclass
class CheckRunAnnotation:
    """One annotation of a check run."""

    path: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    annotation_level: str | None = None
    message: str | None = None
    title: str | None = None
    start_column: int | None = None
    end_column: int | None = None
    raw_details: str | None = None

    def to_dict(self):
        return {key: value for key, value in vars(self).items() if value is not None}


@dataclass
class CheckRunOutput:
    """The output block of a check run."""

    title: str = ""
    summary: str = ""
    annotations: list[CheckRunAnnotation] = field(default_factory=list)

    def to_dict(self):
        data = {"title": self.title, "summary": self.summary}
        if self.annotations:
            data["annotations"] = [a.to_dict() for a in self.annotations]
        return data


@dataclass
class CreateCheckRunOptions:
    """Options for creating a check run."""

    name: str
    head_sha: str
    status: str | None = None

    def to_dict(self):
        data = {"name": self.name, "head_sha": self.head_sha}
        if self.status is not None:
            data["status"] = self.status
        return data


@dataclass
class UpdateCheckRunOptions:
    """Options for updating a check run."""

    name: str
    status: str | None = None
    conclusion: str | None = None
    completed_at: datetime | None = None
    output: CheckRunOutput | None = None

    def to_dict(self):
        data = {"name": self.name}
        if self.status is not None:
            data["status"] = self.status
        if self.conclusion is not None:
            data["conclusion"] = self.conclusion
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.strftime("%Y-%m-%dT%H:%M:%SZ")
        if self.output is not None:
            data["output"] = self.output.to_dict()
        return data


class CheckerGitHubClient(abc.ABC):
    """The GitHub operations a Checker needs."""

    @abc.abstractmethod
    def get_pull_request_diff(self, owner, repo, number):
        """Return the unified diff of a pull request."""

    @abc.abstractmethod
    def create_check_run(self, owner, repo, opt):
        """Create a check run and return it as a CheckRun."""

    @abc.abstractmethod
    def update_check_run(self, owner, repo, check_id, opt):
        """Update a check run and return it as a CheckRun."""


class GitHubAPIClient(CheckerGitHubClient):
    """CheckerGitHubClient talking to the GitHub REST API over HTTP."""

    def __init__(
        self,
        token=None,
        base_url="https://api.github.com",
        session=None,
        retries=5,
        retry_wait=1.0,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.retries = retries
        self.retry_wait = retry_wait

    def _request(self, method, path, accept="application/vnd.github+json", **kwargs):
        headers = {"Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = self.session.request(method, self.base_url + path, headers=headers, **kwargs)
        if resp.status_code >= 400:
            raise GitHubError(resp.status_code, resp.text)
        return resp

    @staticmethod
    def _check_run(data):
        return CheckRun(id=data.get("id"), html_url=data.get("html_url") or "")

    def get_pull_request_diff(self, owner, repo, number):
        resp = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{number}",
            accept="application/vnd.github.v3.diff",
        )
        return resp.text

    def create_check_run(self, owner, repo, opt):
        resp = self._request("POST", f"/repos/{owner}/{repo}/check-runs", json=opt.to_dict())
        return self._check_run(resp.json())

    def update_check_run(self, owner, repo, check_id, opt):
        # The API sometimes answers 401 Bad credentials spuriously, so retry.
        last_error = None
        for attempt in range(1, self.retries + 1):
            try:
                resp = self._request(
                    "PATCH", f"/repos/{owner}/{repo}/check-runs/{check_id}", json=opt.to_dict()
                )
            except (GitHubError, requests.RequestException) as err:
                last_error = err
                log.error("UpdateCheckRun failed: %s", err)
                log.debug("Retrying UpdateCheckRun...: %d", attempt)
                time.sleep(self.retry_wait)
                continue
            return self._check_run(resp.json())
        raise last_error


_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def _header_path(rest):
    return rest.split("\t", 1)[0].strip()


def _parse_multi_file(text):
    """Parse a unified diff covering any number of files."""
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8", errors="replace")
    files = []
    current = None
    hunk = None
    old_left = new_left = 0
    lnum_old = lnum_new = 0
    for raw in text.splitlines():
        if hunk is not None and (old_left > 0 or new_left > 0):
            if raw.startswith("\\"):
                continue
            tag, content = raw[:1], raw[1:]
            if tag == "+":
                hunk.lines.append(Line(LineType.ADDED, content, 0, lnum_new))
                lnum_new += 1
                new_left -= 1
            elif tag == "-":
                hunk.lines.append(Line(LineType.DELETED, content, lnum_old, 0))
                lnum_old += 1
                old_left -= 1
            elif tag in (" ", ""):
                hunk.lines.append(Line(LineType.UNCHANGED, content, lnum_old, lnum_new))
                lnum_old += 1
                lnum_new += 1
                old_left -= 1
                new_left -= 1
            else:
                raise ValueError(f"unexpected line in hunk: {raw!r}")
            continue
        hunk = None
        if raw.startswith("diff "):
            current = FileDiff()
            files.append(current)
        elif raw.startswith("--- "):
            if current is None or current.hunks or current.path_old:
                current = FileDiff()
                files.append(current)
            current.path_old = _header_path(raw[4:])
        elif raw.startswith("+++ "):
            if current is None:
                raise ValueError("'+++' line without a preceding '---' line")
            current.path_new = _header_path(raw[4:])
        elif raw.startswith("@@"):
            match = _HUNK_RE.match(raw)
            if match is None or current is None:
                raise ValueError(f"invalid hunk header: {raw!r}")
            start_old, len_old, start_new, len_new = match.groups()
            hunk = Hunk(
                start_line_old=int(start_old),
                line_length_old=1 if len_old is None else int(len_old),
                start_line_new=int(start_new),
                line_length_new=1 if len_new is None else int(len_new),
            )
            current.hunks.append(hunk)
            old_left, new_left = hunk.line_length_old, hunk.line_length_new
            lnum_old, lnum_new = hunk.start_line_old, hunk.start_line_new
            if old_left == 0 and lnum_old == 0:
                lnum_old = 0
    return files


def _blen(text):
    return len(text.encode("utf-8"))


def _linked_markdown(owner, repo, sha, diag):
    path = diag.location.path
    if not path:
        return diag.message
    line = diag.location.range.start.line
    column = diag.location.range.start.column
    loc = path
    link = f"https://github.com/{owner}/{repo}/blob/{sha}/{path}"
    if line > 0:
        loc += f":{line}"
        link += f"#L{line}"
        if column > 0:
            loc += f":{column}"
    return f"[{loc}]({link}) {diag.message}"


def annotation_to_diagnostic(annotation):
    """Return the annotation's diagnostic, building one from the flat fields if absent."""
    if annotation.diagnostic is not None:
        return annotation.diagnostic
    return Diagnostic(
        message=annotation.message,
        location=Location(
            path=annotation.path,
            range=Range(start=Position(line=annotation.line)),
        ),
        original_output=annotation.raw_message,
    )


def annotations_to_diagnostics(annotations):
    """Convert annotations to diagnostics, keeping their order."""
    return [annotation_to_diagnostic(a) for a in annotations or ()]


class Checker:
    """Filters a check request against its pull request diff and reports it."""

    def __init__(self, req, gh):
        self.req = req
        self.gh = gh

    def check(self, make_request):
        """Run the check; without ``make_request`` only filtered results are returned."""
        filediffs = []
        if self.req.pull_request != 0:
            raw = self.gh.get_pull_request_diff(self.req.owner, self.req.repo, self.req.pull_request)
            filediffs = _parse_multi_file(raw)

        results = annotations_to_diagnostics(self.req.annotations)
        mode = self.req.filter_mode
        if self.req.pull_request == 0 or self.req.outside_diff:
            # Without a pull request there is no diff to filter by.
            mode = Mode.NO_FILTER
        filtered = filter_check(results, filediffs, 1, "", mode)

        if not make_request:
            return CheckResponse(checked_results=filtered)

        try:
            check = self._create_check()
        except GitHubError as err:
            # 403 means read-only access (e.g. pull requests from forks):
            # hand the results back instead of failing.
            if err.status_code == 403:
                return CheckResponse(checked_results=filtered)
            raise

        check_run, conclusion = self._post_check(check.id, filtered)
        return CheckResponse(report_url=check_run.html_url, conclusion=conclusion)

    def _create_check(self):
        opt = CreateCheckRunOptions(
            name=self._check_name(), head_sha=self.req.sha, status="in_progress"
        )
        return self.gh.create_check_run(self.req.owner, self.req.repo, opt)

    def _post_check(self, check_id, checks):
        annotations = [self._to_check_run_annotation(c) for c in checks if c.should_report]
        self._post_annotations(check_id, annotations)
        conclusion = self.conclusion(annotations)
        opt = UpdateCheckRunOptions(
            name=self._check_name(),
            status="completed",
            conclusion=conclusion,
            completed_at=datetime.now(timezone.utc),
            output=CheckRunOutput(title=self._check_title(), summary=self.summary(checks)),
        )
        check_run = self.gh.update_check_run(self.req.owner, self.req.repo, check_id, opt)
        return check_run, conclusion

    def _post_annotations(self, check_id, annotations):
        for offset in range(0, len(annotations), _MAX_ANNOTATIONS_PER_REQUEST):
            opt = UpdateCheckRunOptions(
                name=self._check_name(),
                output=CheckRunOutput(
                    title=self._check_title(),
                    summary="",  # The summary goes with the last request.
                    annotations=annotations[offset : offset + _MAX_ANNOTATIONS_PER_REQUEST],
                ),
            )
            self.gh.update_check_run(self.req.owner, self.req.repo, check_id, opt)

    def _check_name(self):
        return self.req.name or _DEFAULT_NAME

    def _check_title(self):
        name = self._check_name()
        if name != _DEFAULT_NAME:
            return f"{_DEFAULT_NAME} [{name}] report"
        return f"{_DEFAULT_NAME} report"

    def conclusion(self, annotations):
        """Return the check conclusion: success, neutral or failure."""
        if self.req.level:
            # A configured level takes precedence.
            if not annotations:
                return "success"
            if self.req.level.lower() in ("info", "warning"):
                return "neutral"
            return "failure"
        precedence = {"success": 0, "notice": 1, "warning": 2, "failure": 3}
        highest = "success"
        for annotation in annotations:
            level = annotation.annotation_level
            if precedence.get(level, 0) > precedence[highest]:
                highest = level
        if highest == "success":
            return "success"
        if highest in ("notice", "warning"):
            return "neutral"
        return "failure"

    def _annotation_level(self, severity):
        if severity == Severity.ERROR:
            return "failure"
        if severity == Severity.WARNING:
            return "warning"
        if severity == Severity.INFO:
            return "notice"
        return self._req_annotation_level()

    def _req_annotation_level(self):
        return {"info": "notice", "warning": "warning"}.get(self.req.level.lower(), "failure")

    def summary(self, checks):
        """Build the check-run summary, kept under the API's size limit."""
        header = f"reported by {_DEFAULT_NAME} :dog:"
        lines = [header]
        used = _blen(header) + 1
        findings = [c for c in checks if c.should_report]
        filtered = [c for c in checks if not c.should_report]
        finding_lines, used = self._summary_findings("Findings", used, findings)
        lines.extend(finding_lines)
        filtered_lines, _ = self._summary_findings("Filtered Findings", used, filtered)
        lines.extend(filtered_lines)
        return "\n".join(lines)

    def _summary_findings(self, name, used, checks):
        head = f"<details>\n<summary>{name} ({len(checks)})</summary>\n"
        if _blen(head) + 1 + used > _MAX_ALLOWED_SIZE:
            return [], used
        lines = [head]
        used += _blen(head) + 1
        closing = _blen(_DETAILS_CLOSE)
        for check in checks:
            next_line = _linked_markdown(
                self.req.owner, self.req.repo, self.req.sha, check.diagnostic
            )
            if used + _blen(next_line) + 1 + closing >= _MAX_ALLOWED_SIZE:
                if used + _blen(_CUTOFF_MSG) + 1 + closing <= _MAX_ALLOWED_SIZE:
                    lines.append(_CUTOFF_MSG)
                    used += _blen(_CUTOFF_MSG) + 1
                break
            lines.append(next_line)
            used += _blen(next_line) + 1
        lines.append(_DETAILS_CLOSE)
        used += closing + 1
        return lines, used

    def _to_check_run_annotation(self, check):
        diag = check.diagnostic
        loc = diag.location
        start_line = loc.range.start.line
        end_line = loc.range.end.line or start_line
        annotation = CheckRunAnnotation(
            path=loc.path,
            start_line=start_line,
            end_line=end_line,
            annotation_level=self._annotation_level(diag.severity),
            message=diag.message,
            title=self._build_title(check),
        )
        # Columns are only accepted when the annotation spans a single line.
        if start_line == end_line:
            start_col, end_col = loc.range.start.column, loc.range.end.column
            if start_col and end_col:
                annotation.start_column = start_col
                annotation.end_column = end_col
        if diag.original_output:
            annotation.raw_details = diag.original_output
        return annotation

    def _build_title(self, check):
        diag = check.diagnostic
        parts = []
        tool = diag.source.name or self.req.name
        if tool:
            parts.append(f"[{tool}] ")
        loc = diag.location
        parts.append(loc.path)
        start_line = loc.range.start.line
        if start_line > 0:
            parts.append(f"#L{start_line}")
            end_line = loc.range.end.line
            if start_line < end_line:
                parts.append(f"-L{end_line}")
        if diag.code.value:
            if diag.code.url:
                parts.append(f" <{diag.code.value}>({diag.code.url})")
            else:
                parts.append(f" <{diag.code.value}>")
        return "".join(parts)