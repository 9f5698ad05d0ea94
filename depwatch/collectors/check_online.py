"""
Check whether stored repositories are still online.

404 marks a repository deleted; a later 2xx/3xx restores it.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from depwatch.store import RepositoryStore


logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 30


@dataclass
class OnlineCheckSummary:
    total: int = 0
    marked_deleted: int = 0
    restored: int = 0
    unchanged: int = 0
    errors: int = 0


class OnlineChecker:
    """HEAD-checks repository URLs and records deletions."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = 5,
        pause: float = 0.2,
        error_pause: float = 1.0,
        timeout: float = 30.0
    ):
        self.session = session or requests.Session()
        self.sleep = sleep
        self.max_retries = max_retries
        self.pause = pause
        self.error_pause = error_pause
        self.timeout = timeout

    def head_with_retry(self, url: str) -> requests.Response:
        """
        HEAD a URL, retrying on 429 and transport errors.

        Servers that reject HEAD with 405 are retried with GET. After
        max_retries a final GET is made and its result (or error) returned.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                res = self.session.head(url, allow_redirects=True, timeout=self.timeout)

                if res.status_code == 405:
                    res = self.session.get(url, allow_redirects=True, timeout=self.timeout)

                if res.status_code == 429:
                    retry_after = res.headers.get('retry-after')
                    try:
                        wait = int(retry_after) if retry_after else DEFAULT_RETRY_AFTER
                    except ValueError:
                        wait = DEFAULT_RETRY_AFTER
                    logger.warning(
                        f"429 received for {url}. Waiting {wait}s before retry ({attempt}/{self.max_retries})..."
                    )
                    self.sleep(wait)
                    continue

                return res
            except requests.RequestException as e:
                wait = 5 * attempt
                logger.warning(
                    f"Request error for {url} (attempt {attempt}/{self.max_retries}): {e}. Waiting {wait}s..."
                )
                self.sleep(wait)

        return self.session.get(url, allow_redirects=True, timeout=self.timeout)

    def run(self, store: RepositoryStore) -> OnlineCheckSummary:
        logger.info("Loading repositories from database...")
        rows = store.rows_for_online_check()
        summary = OnlineCheckSummary(total=len(rows))
        logger.info(f"Checking {summary.total} repositories...")

        for i, repo in enumerate(rows):
            progress = f"[{i + 1}/{summary.total}]"
            try:
                status = self.head_with_retry(repo['url']).status_code
                is_online = 200 <= status < 400
                is_deleted = repo['deleted_at'] is not None

                if status == 404 and not is_deleted:
                    store.set_deleted(repo['id'], True)
                    summary.marked_deleted += 1
                    logger.info(f"{progress} Marked deleted: {repo['full_name']} (status {status})")
                elif is_online and is_deleted:
                    store.set_deleted(repo['id'], False)
                    summary.restored += 1
                    logger.info(f"{progress} Restored: {repo['full_name']} (status {status})")
                else:
                    summary.unchanged += 1
                    if i % 50 == 0:
                        logger.info(f"{progress} Unchanged: {repo['full_name']} (status {status})")

                self.sleep(self.pause)
            except Exception as e:
                summary.errors += 1
                logger.error(f"{progress} Error checking {repo['full_name']}: {e}")
                self.sleep(self.error_pause)

        return summary
