"""Stores for GitHub App installations and repository tokens."""

from __future__ import annotations

import abc
import threading
from dataclasses import dataclass, replace


@dataclass
class GitHubInstallation:
    """A GitHub App installation, which belongs to an organisation or user account."""

    installation_id: int = 0
    account_name: str = ""
    account_id: int = 0


@dataclass
class GitHubRepositoryToken:
    """A token that lets the command-line client report to one repository."""

    token: str = ""
    repository_owner: str = ""
    repository_name: str = ""
    repository_id: int = 0


class GitHubInstallationStore(abc.ABC):
    """Storage of GitHubInstallation entities keyed by account name."""

    @abc.abstractmethod
    def put(self, inst):
        """Upsert an installation; nothing is written if its ID is unchanged."""

    @abc.abstractmethod
    def get(self, account_name):
        """Return the installation of ``account_name``, or None if there is none."""


class GitHubRepositoryTokenStore(abc.ABC):
    """Storage of GitHubRepositoryToken entities keyed by owner and repository."""

    @abc.abstractmethod
    def put(self, token):
        """Upsert a repository token."""

    @abc.abstractmethod
    def get(self, owner, repo):
        """Return the token of ``owner/repo``, or None if there is none."""


class MemoryInstallationStore(GitHubInstallationStore):
    """GitHubInstallationStore kept in process memory."""

    def __init__(self):
        self._entities: dict[str, GitHubInstallation] = {}
        self._lock = threading.Lock()

    def put(self, inst):
        with self._lock:
            found = self._entities.get(inst.account_name)
            if found is None or found.installation_id != inst.installation_id:
                self._entities[inst.account_name] = replace(inst)

    def get(self, account_name):
        with self._lock:
            found = self._entities.get(account_name)
            return None if found is None else replace(found)


class MemoryRepositoryTokenStore(GitHubRepositoryTokenStore):
    """GitHubRepositoryTokenStore kept in process memory."""

    def __init__(self):
        self._entities: dict[str, GitHubRepositoryToken] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(owner, repo):
        return f"{owner}/{repo}"

    def put(self, token):
        with self._lock:
            self._entities[self._key(token.repository_owner, token.repository_name)] = replace(token)

    def get(self, owner, repo):
        with self._lock:
            found = self._entities.get(self._key(owner, repo))
            return None if found is None else replace(found)