# reviewpup

A library for reporting linter results on code review. It decides which
diagnostics fall inside a pull request diff and publishes them as GitHub
check runs.

## Install

```
pip install reviewpup
```

To run the test suite:

```
pip install "reviewpup[test]"
pytest
```

## Modules

- `reviewpup.difffilter` holds the parsed-diff types `FileDiff`, `Hunk`, `Line`
  and `LineType`. It also holds the filter `Mode`, whose values are parsed from
  the names `default`, `added`, `diff_context`, `file` and `nofilter` by
  `Mode.parse`. `DiffFilter.should_report(path, lnum)` returns a tuple: whether
  to report, the file diff or `None`, and the diff line or `None`.
  `DiffFilter.diff_line` looks up a single line. The module also has
  `normalize_path` and `normalize_diff_path`.
- `reviewpup.filtering` holds the diagnostic types `Diagnostic`, `Location`,
  `Range`, `Position`, `Severity`, `Code`, `Source` and `Suggestion`.
  `filter_check(results, filediffs, strip, cwd, mode)` wraps every diagnostic
  in a `FilteredDiagnostic`. Each one records whether it should be reported,
  whether it lies in a diff file or diff context, its source lines, and its old
  path and line. Nothing is dropped. `get_old_position` maps a new-side line
  back to the old side.
- `reviewpup.models` holds `CheckRequest`, `CheckResponse` and `Annotation`,
  with `to_dict` and `from_dict` for JSON.
- `reviewpup.checker`:
  - `Checker(req, gh).check(make_request)` does the following:
    1. Fetches the pull request diff when `pull_request` is set.
    2. Filters the annotations. Without a pull request, or with
       `outside_diff`, nothing is filtered out.
    3. Creates a check run.
    4. Posts annotations in batches of 50.
    5. Completes the run with a conclusion and a summary limited to 65535
       characters.
  - A 403 on creating the run returns the filtered results instead of raising.
  - `GitHubAPIClient` is a `CheckerGitHubClient` that talks to the GitHub REST
    API with `requests`. It retries check-run updates.
  - API errors are raised as `GitHubError`.
- `reviewpup.client`:
  - `DogHouseClient.check` POSTs a `CheckRequest` to a server's `/check`
    endpoint. The base URL is given or read from `REVIEWPUP_GITHUB_APP_URL`.
    It raises `RuntimeError` on a non-200 status.
  - `GitHubCheckClient.check` runs the `Checker` directly.
- `reviewpup.storage` holds the `GitHubInstallation` and
  `GitHubRepositoryToken` records. It also holds their abstract stores and the
  in-memory `MemoryInstallationStore` and `MemoryRepositoryTokenStore`.
- `reviewpup.tokens` has `generate_repository_token`,
  `get_or_generate_repo_token` and `regenerate_repo_token`.
- `reviewpup.cookieman` encrypts cookie values through a `Cipher` you supply.
  `CookieMan` and `CookieStore` return `Set-Cookie` header values and read
  values back from a `Cookie` request header.
- `reviewpup.ciutil` has `ip_from_request`, `is_from_ci`, `is_from_travis_ci`
  and `is_from_appveyor`. They take a remote address and optional headers and
  honour a `Forwarded` header. `update_travis_ci_ip_addrs` refreshes the known
  Travis CI addresses.

## Example

```python
from reviewpup.difffilter import Mode
from reviewpup.models import Annotation, CheckRequest
from reviewpup.checker import Checker, GitHubAPIClient

req = CheckRequest(
    sha="0123abcd",
    owner="octo-org",
    repo="octo-repo",
    pull_request=14,
    name="my-linter",
    annotations=[Annotation(path="main.py", line=3, message="unused import")],
    filter_mode=Mode.ADDED,
)
gh = GitHubAPIClient(token="token")
response = Checker(req, gh).check(True)
print(response.report_url, response.conclusion)
```

You can see which diagnostics would be reported without creating a check run.
Call `check(False)` and inspect `response.checked_results`. The pull request
diff is still read.

## What it does not do

- There is no command-line program.
- There is no web server. The package has no HTTP handlers for the check
  endpoint, webhooks or a GitHub login flow. The `cookieman` and `ciutil`
  helpers are building blocks for such a server, but the server is not
  included.
- Storage is in memory only. No persistent database backend is provided.
- The package does not sign in as a GitHub App. `GitHubAPIClient` uses a token
  you pass in.
- It ships no cipher implementation for cookies.