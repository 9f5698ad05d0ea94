"""
Find repositories containing the toolkit's config file by filename code
search, sharded by path and file size to get past the 1000-result cap.
"""
import logging
from typing import List, Optional

from depwatch.collectors.base import Collector, dedupe


logger = logging.getLogger(__name__)


def path_matches(path: Optional[str], required_path: str) -> bool:
    """
    Check a match path against the required substring.

    The leading slash of ``required_path`` is ignored so that top-level
    directories still match; an empty requirement accepts everything.
    """
    required = (required_path or '').lower()
    if not required:
        return True
    if not path:
        return False
    return required.lstrip('/') in path.lower()


class FilenameSearchCollector(Collector):
    """Code search for ``filename:<config file>`` across path and size shards."""

    source = "filename-search"
    search_pause = 0.3

    def build_queries(self) -> List[str]:
        # A generic search with no path qualifier always runs first
        shards = [''] + [f'path:{p}' for p in self.target.filename_path_shards]
        fork_qualifier = 'fork:true' if self.target.include_forks else ''

        queries = []
        for shard in shards:
            for size in self.target.size_shards:
                parts = [f'filename:{self.target.filename}', shard, f'size:{size}', fork_qualifier]
                queries.append(' '.join(p for p in parts if p))
        return queries

    def discover(self) -> List[str]:
        logger.info(f"Searching for filename:{self.target.filename} across path and size shards...")
        queries = self.build_queries()
        names = []

        for n, query in enumerate(queries, start=1):
            logger.info(f"Searching: {query} ({n} of {len(queries)})")
            for items in self.client.paginate_search(self.client.search_code, query, pause=self.search_pause):
                for item in items:
                    full_name = (item.get('repository') or {}).get('full_name')
                    if full_name and path_matches(item.get('path'), self.target.required_path):
                        names.append(full_name)

        return dedupe(names)
