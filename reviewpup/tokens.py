"""Generation and lookup of repository tokens."""

from __future__ import annotations

import secrets

from reviewpup.storage import GitHubRepositoryToken


def generate_repository_token():
    """Return a new random token as 16 lower-case hex digits."""
    return secrets.token_hex(8)


def get_or_generate_repo_token(store, owner, repo, repo_id):
    """Return the stored token of ``owner/repo``, creating one if there is none."""
    found = store.get(owner, repo)
    if found is not None:
        return found.token
    return regenerate_repo_token(store, owner, repo, repo_id)


def regenerate_repo_token(store, owner, repo, repo_id):
    """Create, store and return a new token for ``owner/repo``."""
    new_token = GitHubRepositoryToken(
        token=generate_repository_token(),
        repository_owner=owner,
        repository_name=repo,
        repository_id=repo_id,
    )
    store.put(new_token)
    return new_token.token