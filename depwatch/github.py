"""
GitHub operations for depwatch collectors.

Handles code and commit search, repository metadata and GraphQL queries,
backing off when GitHub reports a rate limit.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests


logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"

# Search endpoints only ever return the first 1000 results (10 pages of 100)
MAX_SEARCH_PAGES = 10

MIN_RATE_LIMIT_WAIT = 5
DEFAULT_RATE_LIMIT_WAIT = 30


class GitHubAPIError(Exception):
    """Raised when GitHub returns an unexpected response."""

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"GitHub API error {status_code}: {body}")


class RateLimitError(GitHubAPIError):
    """Raised when a request stays rate limited after all retries."""
    pass


def is_rate_limited(response: requests.Response) -> bool:
    """
    Decide whether a response is a rate-limit rejection.

    429 always is. 403 is only when GitHub says so through headers or body,
    so that plain permission errors are not retried.
    """
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False

    headers = response.headers
    if headers.get('retry-after') is not None:
        return True
    if headers.get('x-ratelimit-remaining') == '0':
        return True
    try:
        body = response.text or ''
    except Exception:
        body = ''
    return 'rate limit' in body.lower()


def rate_limit_wait_seconds(response: requests.Response, now: float) -> float:
    """
    Compute how long to wait before retrying a rate-limited request.

    Args:
        response: Rate-limited response
        now: Current unix time in seconds

    Returns:
        Seconds to sleep, never below MIN_RATE_LIMIT_WAIT
    """
    retry_after = response.headers.get('retry-after')
    reset = response.headers.get('x-ratelimit-reset')

    wait = DEFAULT_RATE_LIMIT_WAIT
    if retry_after is not None:
        try:
            wait = int(retry_after)
        except ValueError:
            pass
    elif reset is not None:
        try:
            wait = int(reset) - int(now) + 2
        except ValueError:
            pass

    return max(wait, MIN_RATE_LIMIT_WAIT)


class GitHubClient:
    """Handles GitHub REST and GraphQL API operations."""

    def __init__(
        self,
        token: str,
        user_agent: str = "depwatch-dependents-scripts",
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        max_retries: int = 10,
        timeout: float = 30.0,
        api_base: str = API_BASE
    ):
        """
        Initialize GitHub client.

        Args:
            token: Personal access token
            user_agent: User-Agent header value
            session: Optional requests session (for tests)
            sleep: Sleep function used for backoff and pacing
            clock: Time source used to read rate-limit reset headers
            max_retries: Rate-limited retries before giving up
            timeout: Per-request timeout in seconds
            api_base: REST API root
        """
        self.token = token
        self.api_base = api_base.rstrip('/')
        self.sleep = sleep
        self.clock = clock
        self.max_retries = max_retries
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'token {token}',
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': user_agent
        })

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send a request, sleeping and retrying while rate limited.

        Raises:
            RateLimitError: If still rate limited after max_retries
        """
        kwargs.setdefault('timeout', self.timeout)
        attempt = 0

        while True:
            response = self.session.request(method, url, **kwargs)
            if not is_rate_limited(response):
                return response

            attempt += 1
            if attempt > self.max_retries:
                raise RateLimitError(
                    response.status_code,
                    response.text,
                    f"Still rate limited after {self.max_retries} retries: {url}"
                )

            wait = rate_limit_wait_seconds(response, self.clock())
            logger.warning(
                f"Rate limited ({response.status_code}) on {url}. "
                f"Waiting {wait}s (retry {attempt}/{self.max_retries})..."
            )
            self.sleep(wait)

    def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET a REST path and return JSON, raising on non-2xx."""
        response = self._request('GET', f"{self.api_base}{path}", params=params)
        if not response.ok:
            raise GitHubAPIError(response.status_code, response.text)
        return response.json()

    def search_code(self, query: str, page: int, per_page: int = 100) -> Dict[str, Any]:
        """
        Run one page of a code search.

        Args:
            query: Search query (qualifiers included)
            page: 1-based page number
            per_page: Results per page (max 100)

        Returns:
            Search response with ``total_count`` and ``items``
        """
        return self._get_json('/search/code', {'q': query, 'per_page': per_page, 'page': page})

    def search_commits(self, query: str, page: int, per_page: int = 100) -> Dict[str, Any]:
        """Run one page of a commit search, newest commits first."""
        return self._get_json('/search/commits', {
            'q': query,
            'sort': 'committer-date',
            'order': 'desc',
            'per_page': per_page,
            'page': page
        })

    def get_repo(self, full_name: str) -> Optional[Dict[str, Any]]:
        """
        Fetch repository metadata.

        Args:
            full_name: ``owner/repo``

        Returns:
            Repository payload, or None if GitHub did not return it
        """
        response = self._request('GET', f"{self.api_base}/repos/{full_name}")
        if not response.ok:
            logger.warning(f"Failed to fetch repo meta for {full_name}: {response.status_code}")
            return None
        return response.json()

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL query.

        Returns:
            The ``data`` object of the response

        Raises:
            GitHubAPIError: On HTTP failure or GraphQL errors
        """
        response = self._request(
            'POST',
            f"{self.api_base}/graphql",
            json={'query': query, 'variables': variables or {}}
        )
        if not response.ok:
            raise GitHubAPIError(response.status_code, response.text)

        payload = response.json()
        errors = payload.get('errors')
        if errors:
            messages = '; '.join(str(e.get('message', e)) for e in errors)
            raise GitHubAPIError(response.status_code, response.text, f"GraphQL error: {messages}")
        return payload.get('data') or {}

    def paginate_search(
        self,
        fetch: Callable[[str, int], Dict[str, Any]],
        query: str,
        max_pages: int = MAX_SEARCH_PAGES,
        pause: float = 0.3
    ) -> Iterator[List[Dict[str, Any]]]:
        """
        Yield search result pages until an empty page or the page cap.

        Args:
            fetch: Page fetcher, e.g. ``self.search_code``
            query: Search query
            max_pages: Highest page to request
            pause: Seconds to sleep after each non-empty page
        """
        for page in range(1, max_pages + 1):
            data = fetch(query, page)
            items = data.get('items') if isinstance(data, dict) else None
            if not isinstance(items, list) or not items:
                break

            yield items

            self.sleep(pause)
