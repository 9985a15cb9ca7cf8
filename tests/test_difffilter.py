import os

import pytest

from reviewpup.difffilter import (
    DiffFilter,
    FileDiff,
    Hunk,
    Line,
    LineType,
    Mode,
    normalize_diff_path,
    normalize_path,
)


def _hunk(old_start, old_len, new_start, new_len, body):
    lines = []
    old, new = old_start, new_start
    for text in body:
        marker, content = text[0], text[1:]
        if marker == "+":
            lines.append(Line(LineType.ADDED, content, 0, new))
            new += 1
        elif marker == "-":
            lines.append(Line(LineType.DELETED, content, old, 0))
            old += 1
        else:
            lines.append(Line(LineType.UNCHANGED, content, old, new))
            old += 1
            new += 1
    return Hunk(old_start, old_len, new_start, new_len, lines)


_SAMPLE_BODY = [
    " unchanged, contextual line",
    "-deleted line",
    "+added line",
    "+added line",
    " unchanged, contextual line",
]


def _sample_root():
    return [
        FileDiff("a/sample.old.txt", "b/sample.new.txt", [_hunk(1, 3, 1, 4, _SAMPLE_BODY)]),
        FileDiff(
            "a/subdir/nonewline.old.txt",
            "b/subdir/nonewline.new.txt",
            [
                _hunk(
                    1, 4, 1, 4,
                    [
                        ' " vim: nofixeol noendofline',
                        " No newline at end of both the old and new file",
                        "-a",
                        "-a",
                        "+b",
                        "+b",
                    ],
                )
            ],
        ),
    ]


def _sample_subdir():
    return [
        FileDiff(
            "a/filter/sample.old.txt",
            "b/filter/sample.new.txt",
            [_hunk(1, 3, 1, 4, _SAMPLE_BODY)],
        ),
        FileDiff(
            "a/sample.old.txt",
            "b/sample.new.txt",
            [
                _hunk(
                    1, 4, 1, 5,
                    [
                        ' " vim: nofixeol noendofline',
                        " No newline at end of both the old and new file",
                        "-a",
                        "-a",
                        "+b",
                        "+b",
                        "+b",
                    ],
                )
            ],
        ),
    ]


@pytest.mark.parametrize(
    "value, want",
    [
        ("", Mode.DEFAULT),
        ("default", Mode.DEFAULT),
        ("added", Mode.ADDED),
        ("diff_context", Mode.DIFF_CONTEXT),
        ("file", Mode.FILE),
        ("nofilter", Mode.NO_FILTER),
    ],
)
def test_mode_parse(value, want):
    assert Mode.parse(value) is want


def test_mode_parse_unknown():
    with pytest.raises(ValueError, match="invalid mode name: unknown"):
        Mode.parse("unknown")


@pytest.mark.parametrize("mode", list(Mode))
def test_mode_str_round_trip(mode):
    assert Mode.parse(str(mode)) is mode


def test_mode_str_names():
    assert str(Mode.parse("")) == "default"
    assert str(Mode.parse("diff_context")) == "diff_context"
    assert str(Mode.parse("nofilter")) == "nofilter"


ROOT_CASES = [
    ("sample.new.txt", 2, Mode.ADDED, True, True, True),
    ("<abs>sample.new.txt", 2, Mode.ADDED, True, True, True),
    ("sample.new.txt", 1, Mode.ADDED, False, True, True),
    ("sample.new.txt", 1, Mode.DIFF_CONTEXT, True, True, True),
    ("subdir/nonewline.new.txt", 3, Mode.ADDED, True, True, True),
    ("sample.new.txt", 14, Mode.FILE, True, True, False),
    ("sample.new.txt", 0, Mode.FILE, True, True, False),
    ("sample.new.txt", 0, Mode.ADDED, False, True, False),
    ("sample.new.txt", 2, Mode.NO_FILTER, True, True, True),
    ("any_path_with_any_line.txt", 141414, Mode.NO_FILTER, True, False, False),
    ("any_path_only.txt", 0, Mode.NO_FILTER, True, False, False),
]


@pytest.mark.parametrize("path, lnum, mode, want, want_file, want_line", ROOT_CASES)
def test_diff_filter_root(tmp_path, path, lnum, mode, want, want_file, want_line):
    cwd = str(tmp_path)
    if path.startswith("<abs>"):
        path = os.path.join(cwd, path[len("<abs>"):])
    df = DiffFilter(_sample_root(), 1, cwd, mode)
    got, got_file, got_line = df.should_report(path, lnum)
    assert got is want
    assert (got_file is not None) is want_file
    assert (got_line is not None) is want_line


SUBDIR_CASES = [
    ("sample.new.txt", 2, Mode.ADDED, True, True, True),
    ("sample.new.txt", 2, Mode.DEFAULT, True, True, True),
    ("<abs>sample.new.txt", 2, Mode.ADDED, True, True, True),
    ("sample.new.txt", 5, Mode.ADDED, False, True, False),
]


@pytest.mark.parametrize("path, lnum, mode, want, want_file, want_line", SUBDIR_CASES)
def test_diff_filter_subdir(tmp_path, path, lnum, mode, want, want_file, want_line):
    cwd = str(tmp_path / "filter")
    if path.startswith("<abs>"):
        path = os.path.join(cwd, path[len("<abs>"):])
    df = DiffFilter(_sample_subdir(), 1, cwd, mode, project_rel_path="filter")
    got, got_file, got_line = df.should_report(path, lnum)
    assert got is want
    assert (got_file is not None) is want_file
    assert (got_line is not None) is want_line


def test_should_report_returns_file_and_line(tmp_path):
    files = _sample_root()
    df = DiffFilter(files, 1, str(tmp_path), Mode.ADDED)
    _, got_file, got_line = df.should_report("sample.new.txt", 3)
    assert got_file is files[0]
    assert got_line.content == "added line"
    assert got_line.type is LineType.ADDED


def test_diff_line(tmp_path):
    df = DiffFilter(_sample_root(), 1, str(tmp_path), Mode.ADDED)
    assert df.diff_line("subdir/nonewline.new.txt", 1).content == '" vim: nofixeol noendofline'
    assert df.diff_line("sample.new.txt", 14) is None
    assert df.diff_line("missing.txt", 1) is None


def test_project_rel_path_ignored_without_cwd():
    df = DiffFilter(_sample_subdir(), 1, "", Mode.ADDED, project_rel_path="filter")
    got, _, got_line = df.should_report("sample.new.txt", 3)
    assert got is True
    assert got_line.content == "b"


@pytest.mark.parametrize(
    "diffpath, strip, want",
    [
        ("/dev/null", 1, ""),
        ("a/b/c.txt", 1, "b/c.txt"),
        ("a/b/c.txt", 0, "a/b/c.txt"),
        ("a.txt", 1, "a.txt"),
        ("a//b/./c.txt", 0, "a/b/c.txt"),
    ],
)
def test_normalize_diff_path(diffpath, strip, want):
    assert normalize_diff_path(diffpath, strip) == want


def test_normalize_diff_path_keeps_absolute(tmp_path):
    path = str(tmp_path / "x" / "y.txt")
    assert normalize_diff_path(path, 1) == path.replace(os.sep, "/")


def test_normalize_path(tmp_path):
    workdir = str(tmp_path)
    assert normalize_path(".", workdir, "") == ""
    assert normalize_path(os.path.join(workdir, "d", "f.txt"), workdir, "") == "d/f.txt"
    assert normalize_path("f.txt", workdir, "sub") == "sub/f.txt"
    outside = str(tmp_path.parent / "other.txt")
    assert normalize_path(outside, workdir, "sub") == outside.replace(os.sep, "/")