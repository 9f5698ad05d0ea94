"""
Repository record schema.

Every collector normalizes what it finds into RepositoryData before it is
written to the repositories table.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


_GITHUB_URL_RE = re.compile(r'github\.com/([^/]+)/([^/?#]+)')


def full_name_from_url(url: str) -> Optional[str]:
    """
    Extract ``owner/repo`` from a GitHub URL.

    Args:
        url: URL like https://github.com/owner/repo

    Returns:
        ``owner/repo`` or None if the URL does not point at a repository
    """
    if not url:
        return None
    match = _GITHUB_URL_RE.search(url)
    if not match:
        return None
    repo = match.group(2)
    if repo.endswith('.git'):
        repo = repo[:-4]
    return f"{match.group(1)}/{repo}"


class RepositoryData(BaseModel):
    """Normalized repository row produced by a collector."""
    full_name: str
    name: str
    owner: str
    url: str
    homepage: Optional[str] = None
    stars: int = 0
    forks: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    default_branch: Optional[str] = None
    source: List[str] = Field(default_factory=list, description="Collector tags that found this repository")

    @field_validator('homepage', 'default_branch', mode='before')
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator('stars', 'forks', mode='before')
    @classmethod
    def _none_to_zero(cls, value):
        return 0 if value is None else value

    @field_validator('source', mode='before')
    @classmethod
    def _normalize_source(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        # Keep first-seen order while dropping duplicates
        seen = []
        for tag in value:
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @classmethod
    def from_github(cls, meta: Dict[str, Any], source: Union[str, List[str]]) -> 'RepositoryData':
        """
        Build a record from a ``GET /repos/{owner}/{repo}`` payload.

        Args:
            meta: REST repository payload
            source: Collector tag (or tags) to record

        Returns:
            RepositoryData instance
        """
        return cls(
            full_name=meta['full_name'],
            name=meta['name'],
            owner=meta['owner']['login'],
            url=meta['html_url'],
            homepage=meta.get('homepage'),
            stars=meta.get('stargazers_count', 0),
            forks=meta.get('forks_count', 0),
            created_at=meta.get('created_at'),
            updated_at=meta.get('updated_at'),
            default_branch=meta.get('default_branch'),
            source=source,
        )
