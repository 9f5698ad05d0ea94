"""
Find dependent repositories through the GraphQL ``search(type: CODE)``
connection and export them as CSV.

The GraphQL search already returns stars and forks, so no per-repository
metadata calls are needed.
"""
import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from depwatch.collectors.base import Collector, CollectionSummary
from depwatch.models import RepositoryData
from depwatch.store import RepositoryStore


logger = logging.getLogger(__name__)

SEARCH_CODE_QUERY = """
query SearchCode($q: String!, $cursor: String) {
  search(query: $q, type: CODE, first: 100, after: $cursor) {
    codeCount
    pageInfo { endCursor hasNextPage }
    edges {
      node {
        __typename
        ... on Code {
          repository {
            nameWithOwner
            name
            owner { login }
            url
            stargazerCount
            forkCount
          }
        }
      }
    }
  }
}
"""

CSV_COLUMNS = ['full_name', 'name', 'owner', 'url', 'stars', 'forks']


class DependentsGraphqlCollector(Collector):
    """GraphQL code search over package names in manifest files."""

    source = "dependents-graphql"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.repositories: Dict[str, Dict[str, Any]] = {}
        self.fetched = False

    def build_queries(self) -> List[str]:
        return [
            f"{term} in:file filename:{manifest}"
            for term in self.target.search_terms
            for manifest in self.target.manifest_files
        ]

    def fetch_dependents(self) -> List[Dict[str, Any]]:
        """
        Page through every query, keyed by nameWithOwner.

        Returns:
            Repository objects as returned by GraphQL
        """
        logger.info(f"Searching code references for {self.target.full_name} via GraphQL...")
        self.repositories = {}

        for query in self.build_queries():
            cursor: Optional[str] = None
            page = 1
            while True:
                logger.info(f"Searching: {query} (page {page})")
                data = self.client.graphql(SEARCH_CODE_QUERY, {'q': query, 'cursor': cursor})

                conn = data.get('search') or {}
                for edge in conn.get('edges') or []:
                    repo = ((edge or {}).get('node') or {}).get('repository')
                    if repo and repo.get('nameWithOwner'):
                        self.repositories[repo['nameWithOwner']] = repo

                page_info = conn.get('pageInfo') or {}
                cursor = page_info.get('endCursor')
                if not page_info.get('hasNextPage') or not cursor:
                    break
                page += 1

        self.fetched = True
        return list(self.repositories.values())

    def discover(self) -> List[str]:
        return [repo['nameWithOwner'] for repo in self.fetch_dependents()]

    def rows(self) -> List[Dict[str, Any]]:
        """Flatten fetched repositories into CSV rows."""
        return [
            {
                'full_name': repo['nameWithOwner'],
                'name': repo.get('name', ''),
                'owner': (repo.get('owner') or {}).get('login', ''),
                'url': repo.get('url', ''),
                'stars': repo.get('stargazerCount') or 0,
                'forks': repo.get('forkCount') or 0
            }
            for repo in self.repositories.values()
        ]

    def write_csv(self, output_path: Path) -> int:
        """
        Write fetched repositories to CSV.

        Returns:
            Number of rows written
        """
        rows = self.rows()
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, quoting=csv.QUOTE_NONNUMERIC)
            writer.writeheader()
            writer.writerows(rows)
        logger.info(f"Saved {len(rows)} dependents to {output_path}")
        return len(rows)

    def records(self) -> List[RepositoryData]:
        return [RepositoryData(source=self.source, **row) for row in self.rows()]

    def run(self, store: RepositoryStore) -> CollectionSummary:
        """Save the GraphQL results directly, without metadata enrichment."""
        if not self.fetched:
            self.fetch_dependents()

        records = self.records()
        summary = CollectionSummary(found=len(records), enriched=len(records))
        if not records:
            logger.info("No repositories found.")
            return summary

        saved = store.process_repositories(records)
        summary.saved = saved.saved_count
        summary.updated = saved.updated_count
        summary.errors = saved.error_count
        return summary
