"""
Find repositories that depend on the target package by searching manifest
and lock files with the REST code search API.
"""
import logging
from typing import List

from depwatch.collectors.base import Collector, dedupe


logger = logging.getLogger(__name__)


class DependentsApiCollector(Collector):
    """Code search for the package name across manifests and lockfiles."""

    source = "dependents-api"
    enrich_pause = 0.15
    filter_forks = True
    search_pause = 0.3

    def build_queries(self) -> List[str]:
        """
        Every term x manifest file x path shard combination.

        No ``fork:`` qualifier is added; GitHub rejects it in some code
        search queries, so forks are dropped after metadata is fetched.
        """
        queries = []
        for term in self.target.search_terms:
            for manifest in self.target.manifest_files:
                for shard in self.target.path_shards:
                    parts = [term, 'in:file', f'filename:{manifest}']
                    if shard:
                        parts.append(f'path:{shard}')
                    queries.append(' '.join(parts))
        return queries

    def discover(self) -> List[str]:
        logger.info("Collecting repositories referencing the package in manifests/lockfiles...")
        queries = self.build_queries()
        names = []

        for n, query in enumerate(queries, start=1):
            logger.info(f"Searching: {query} ({n} of {len(queries)})")
            for items in self.client.paginate_search(self.client.search_code, query, pause=self.search_pause):
                for item in items:
                    full_name = (item.get('repository') or {}).get('full_name')
                    if isinstance(full_name, str):
                        names.append(full_name)

        return dedupe(names)
