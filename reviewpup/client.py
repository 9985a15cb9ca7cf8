"""Clients that submit check requests."""

from __future__ import annotations

import os

import requests

from reviewpup.checker import Checker
from reviewpup.models import CheckResponse

_BASE_ENDPOINT = "https://reviewpup.app"
_BASE_URL_ENV = "REVIEWPUP_GITHUB_APP_URL"
_VERSION = "0.1.0"


class DogHouseClient:
    """Sends check requests to a check server over HTTP."""

    def __init__(self, session=None, base_url=None, timeout=60):
        self.session = session or requests.Session()
        self.base_url = base_url or os.environ.get(_BASE_URL_ENV) or _BASE_ENDPOINT
        self.timeout = timeout

    def check(self, req, send_request=True):
        """POST ``req`` to the server's /check endpoint and return its CheckResponse.

        Raises RuntimeError on a non-200 status and ValueError on an undecodable body.
        """
        url = self.base_url.rstrip("/") + "/check"
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"reviewpup/{_VERSION}",
        }
        resp = self.session.post(url, json=req.to_dict(), headers=headers, timeout=self.timeout)
        if resp.status_code != 200:
            raise RuntimeError(f"status={resp.status_code}: {resp.text}")
        try:
            data = resp.json()
        except ValueError as err:
            raise ValueError(f"failed to decode response: error={err}, resp={resp.text}") from err
        return CheckResponse.from_dict(data)


class GitHubCheckClient:
    """Runs checks directly against GitHub instead of a check server."""

    def __init__(self, gh):
        self.gh = gh

    def check(self, req, make_request=True):
        """Run the check locally with the wrapped GitHub client."""
        return Checker(req, self.gh).check(make_request)