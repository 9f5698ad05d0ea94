"""
Scrape the target's "Used by" dependents listing with a headless browser.

The listing is only rendered as HTML, so Chromium (via Playwright) walks the
pagination and BeautifulSoup pulls repository names out of each page.
"""
import logging
import time
from typing import Callable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeoutError

from depwatch.collectors.base import Collector, dedupe


logger = logging.getLogger(__name__)

ROW_SELECTOR = '.Box-row'


def parse_dependents_page(html: str) -> List[str]:
    """
    Extract dependents from one listing page.

    Args:
        html: Page HTML

    Returns:
        ``owner/name`` per row (bare ``name`` when the row has no owner link)
    """
    soup = BeautifulSoup(html, 'html.parser')
    names = []

    for row in soup.select(ROW_SELECTOR):
        repo_link = row.select_one('a[data-hovercard-type="repository"]')
        if repo_link is None:
            continue
        name = repo_link.get_text(strip=True)
        if not name:
            continue

        owner_link = (
            row.select_one('a[data-hovercard-type="user"]')
            or row.select_one('a[data-hovercard-type="organization"]')
        )
        owner = owner_link.get_text(strip=True) if owner_link else ''
        names.append(f"{owner}/{name}" if owner else name)

    return names


def find_next_href(html: str) -> Optional[str]:
    """
    Locate the "Next" pagination link.

    Prefers ``a[rel=next]``; falls back to button-group links whose text
    starts with "next". Disabled links are ignored.
    """
    soup = BeautifulSoup(html, 'html.parser')

    by_rel = soup.select_one('a[rel="next"]')
    if by_rel is not None and 'disabled' not in (by_rel.get('class') or []):
        href = by_rel.get('href')
        if href:
            return href

    for btn in soup.select('a.BtnGroup-item, a.next_page'):
        text = btn.get_text(strip=True).lower()
        if text.startswith('next') and 'disabled' not in (btn.get('class') or []):
            href = btn.get('href')
            if href:
                return href

    return None


class DependentsScraper:
    """Walks the dependents listing pages in a browser page."""

    def __init__(
        self,
        url: str,
        sleep: Callable[[float], None] = time.sleep,
        page_pause: float = 2.5,
        row_timeout_ms: int = 20000,
        navigation_timeout_ms: int = 60000,
        default_timeout_ms: int = 30000
    ):
        self.url = url
        self.sleep = sleep
        self.page_pause = page_pause
        self.row_timeout_ms = row_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.default_timeout_ms = default_timeout_ms

    def scrape(self) -> List[str]:
        """Launch headless Chromium and scrape every page."""
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=True)
            try:
                page = browser.new_page()
                page.set_default_navigation_timeout(self.navigation_timeout_ms)
                page.set_default_timeout(self.default_timeout_ms)
                page.goto(self.url, wait_until='networkidle')
                return self.scrape_pages(page)
            finally:
                browser.close()

    def scrape_pages(self, page) -> List[str]:
        """
        Scrape from the page's current URL until there is no next page.

        A next URL that was already visited ends the loop, so a circular
        pagination cannot run forever.

        Args:
            page: Playwright page already at the first listing page

        Returns:
            Names in the order they were scraped (may contain duplicates)
        """
        results: List[str] = []
        visited = {page.url}
        page_num = 1

        while True:
            logger.info(f"--- Scraping page: {page_num} ---")
            logger.info(f"Current page URL: {page.url}")

            try:
                page.wait_for_selector(ROW_SELECTOR, timeout=self.row_timeout_ms)
            except PlaywrightTimeoutError:
                logger.info(f"Timeout waiting for {ROW_SELECTOR} on page {page_num}. Assuming no more pages.")
                break

            html = page.content()
            repos = parse_dependents_page(html)
            results.extend(repos)
            logger.info(f"Scraped page {page_num}, repos on this page: {len(repos)}, total collected: {len(results)}")
            if repos:
                logger.debug(f"First repo on this page: {repos[0]}; last: {repos[-1]}")

            # Be polite between page loads
            self.sleep(self.page_pause)

            next_href = find_next_href(html)
            if not next_href:
                logger.info("No more 'Next' button found. Ending scraping.")
                break

            next_url = urljoin(page.url, next_href)
            if next_url in visited:
                logger.info(f"Detected repeated next URL ({next_url}). Ending scraping to avoid loop.")
                break
            visited.add(next_url)

            logger.info(f"Navigating to next page: {next_url}")
            page_num += 1
            page.goto(next_url, wait_until='networkidle', timeout=self.navigation_timeout_ms)

        return results


class ScrapeDependentsCollector(Collector):
    """Dependents listing scrape, enriched through the REST API."""

    source = "scrape-dependents"

    def __init__(self, *args, scraper: Optional[DependentsScraper] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.scraper = scraper or DependentsScraper(self.target.dependents_url, sleep=self.sleep)

    def discover(self) -> List[str]:
        return dedupe(self.scraper.scrape())
