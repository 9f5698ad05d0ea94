"""
Refresh default_branch for every repository that is still online.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from depwatch.github import GitHubClient
from depwatch.store import RepositoryStore


logger = logging.getLogger(__name__)


@dataclass
class BranchUpdateSummary:
    total: int = 0
    updated: int = 0
    unchanged: int = 0
    null_from_meta: int = 0
    errors: int = 0


class DefaultBranchUpdater:
    """Writes default_branch only when GitHub reports a different value."""

    def __init__(
        self,
        client: GitHubClient,
        pause: float = 0.15,
        error_pause: float = 1.0,
        sleep: Optional[Callable[[float], None]] = None
    ):
        self.client = client
        self.pause = pause
        self.error_pause = error_pause
        self.sleep = sleep or getattr(client, 'sleep', time.sleep)

    def run(self, store: RepositoryStore) -> BranchUpdateSummary:
        logger.info("Loading repositories from database...")
        rows = store.rows_for_branch_update()
        summary = BranchUpdateSummary(total=len(rows))
        logger.info(f"Updating default_branch for {summary.total} repositories...")

        for i, repo in enumerate(rows):
            progress = f"[{i + 1}/{summary.total}]"
            try:
                meta = self.client.get_repo(repo['full_name'])
                if not meta:
                    summary.errors += 1
                    logger.warning(f"{progress} Failed to fetch metadata for {repo['full_name']}")
                    self.sleep(self.error_pause)
                    continue

                default_branch = meta.get('default_branch') or None
                if default_branch is None:
                    summary.null_from_meta += 1

                if repo['default_branch'] != default_branch:
                    store.set_default_branch(repo['id'], default_branch)
                    summary.updated += 1
                    logger.info(f"{progress} Updated: {repo['full_name']} (default_branch: {default_branch or 'null'})")
                else:
                    summary.unchanged += 1
                    if i % 50 == 0:
                        logger.info(f"{progress} Unchanged: {repo['full_name']} (default_branch: {default_branch or 'null'})")

                self.sleep(self.pause)
            except Exception as e:
                summary.errors += 1
                logger.error(f"{progress} Error processing {repo['full_name']}: {e}")
                self.sleep(self.error_pause)

        return summary
