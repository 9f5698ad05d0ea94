"""
Find repositories bootstrapped from the toolkit template by searching for
its initial commit message.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from depwatch.collectors.base import Collector
from depwatch.github import MAX_SEARCH_PAGES
from depwatch.models import full_name_from_url


logger = logging.getLogger(__name__)

PER_PAGE = 100


def commit_repository_name(item: Dict[str, Any]) -> Optional[str]:
    """Repository full name for a commit search hit."""
    repository = item.get('repository') or {}
    return repository.get('full_name') or full_name_from_url(repository.get('html_url', ''))


class InitialCommitsCollector(Collector):
    """Commit search for the template's initial commit message."""

    source = "initial-commit"
    page_pause = 0.8

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.total_count = 0
        self.pages_fetched = 0

    def discover(self) -> List[str]:
        query = self.target.initial_commit_message
        logger.info(f"Searching for commits with '{query}'...")

        names = set()

        logger.info("Fetching page 1...")
        first = self.client.search_commits(query, 1, per_page=PER_PAGE)
        self.total_count = first.get('total_count', 0)
        logger.info(f"Total commits found: {self.total_count}")

        for item in first.get('items', []):
            name = commit_repository_name(item)
            if name:
                names.add(name)

        # GitHub only serves the first 1000 results
        total_pages = min(math.ceil(self.total_count / PER_PAGE), MAX_SEARCH_PAGES)
        self.pages_fetched = max(total_pages, 1)
        logger.info(f"Will fetch {total_pages} pages total (limited to first {MAX_SEARCH_PAGES} pages by GitHub API)")

        for page in range(2, total_pages + 1):
            logger.info(f"Fetching page {page}/{total_pages}...")
            response = self.client.search_commits(query, page, per_page=PER_PAGE)

            for item in response.get('items', []):
                name = commit_repository_name(item)
                if name:
                    names.add(name)

            progress = page / total_pages * 100
            logger.info(
                f"Progress: {page}/{total_pages} pages ({progress:.1f}%) - "
                f"{len(names)} unique repositories found"
            )
            self.sleep(self.page_pause)

        return sorted(names)
