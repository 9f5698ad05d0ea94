"""
Base collector interface and shared enrichment.

A collector discovers ``owner/repo`` names from some GitHub surface,
enriches them with repository metadata and saves them under its source tag.
"""
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional

from depwatch.github import GitHubClient
from depwatch.models import RepositoryData
from depwatch.store import RepositoryStore
from depwatch.target_config import TargetConfig


logger = logging.getLogger(__name__)


@dataclass
class CollectionSummary:
    """Counts reported at the end of a collector run."""
    found: int = 0
    enriched: int = 0
    saved: int = 0
    updated: int = 0
    errors: int = 0


def dedupe(names: List[str]) -> List[str]:
    """Drop duplicates and empty names, keeping first-seen order."""
    seen = set()
    unique = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            unique.append(name)
    return unique


def enrich_repositories(
    client: GitHubClient,
    full_names: List[str],
    source: str,
    pause: float = 0.8,
    concurrency: int = 1,
    include_forks: bool = True,
    sleep: Optional[Callable[[float], None]] = None
) -> List[RepositoryData]:
    """
    Fetch metadata for each repository and build records.

    Args:
        client: GitHub client
        full_names: ``owner/repo`` names to look up
        source: Source tag stored on every record
        pause: Seconds to sleep after each metadata call
        concurrency: Number of worker threads (1 = sequential)
        include_forks: Keep repositories GitHub reports as forks
        sleep: Sleep function (defaults to the client's)

    Returns:
        Records in input order, without names whose metadata was unavailable
    """
    sleep = sleep or client.sleep
    total = len(full_names)

    def fetch(indexed):
        i, full_name = indexed
        logger.info(f"Processing {full_name} ({i} of {total})")
        try:
            meta = client.get_repo(full_name)
        except Exception as e:
            logger.error(f"Error fetching metadata for {full_name}: {e}")
            meta = None
        # Pace between calls to reduce abuse detection
        sleep(pause)
        return meta

    indexed_names = list(enumerate(full_names, start=1))
    if concurrency > 1:
        with ThreadPoolExecutor(max_workers=concurrency) as executor:
            metas = list(executor.map(fetch, indexed_names))
    else:
        metas = [fetch(item) for item in indexed_names]

    records = []
    for meta in metas:
        if not meta:
            continue
        if not include_forks and meta.get('fork'):
            continue
        records.append(RepositoryData.from_github(meta, source))
    return records


class Collector(ABC):
    """
    Abstract base class for dependent-repository collectors.

    Subclasses implement discover(); run() handles enrichment and saving.
    """

    source: str = ""
    enrich_pause: float = 0.8
    # Drop forks after fetching metadata unless the target includes them
    filter_forks: bool = False

    def __init__(
        self,
        client: GitHubClient,
        target: Optional[TargetConfig] = None,
        concurrency: int = 1,
        sleep: Optional[Callable[[float], None]] = None
    ):
        self.client = client
        self.target = target or TargetConfig()
        self.concurrency = max(1, concurrency)
        self.sleep = sleep or getattr(client, 'sleep', time.sleep)

    @property
    def include_forks(self) -> bool:
        return self.target.include_forks or not self.filter_forks

    @abstractmethod
    def discover(self) -> List[str]:
        """
        Find candidate repositories.

        Returns:
            Unique ``owner/repo`` names
        """
        pass

    def enrich(self, full_names: List[str]) -> List[RepositoryData]:
        return enrich_repositories(
            self.client,
            full_names,
            self.source,
            pause=self.enrich_pause,
            concurrency=self.concurrency,
            include_forks=self.include_forks,
            sleep=self.sleep
        )

    def run(self, store: RepositoryStore) -> CollectionSummary:
        """Discover, enrich and save. Returns counts for the run summary."""
        names = self.discover()
        logger.info(f"Found {len(names)} unique repositories.")

        summary = CollectionSummary(found=len(names))
        if not names:
            logger.info("No repositories found.")
            return summary

        records = self.enrich(names)
        summary.enriched = len(records)

        saved = store.process_repositories(records)
        summary.saved = saved.saved_count
        summary.updated = saved.updated_count
        summary.errors = saved.error_count
        return summary
