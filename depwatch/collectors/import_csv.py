"""
Import repositories from a semicolon-delimited CSV export.

Each row's ``data-origin`` column becomes the repository's source tag.
Rows whose URL is already stored are skipped.
"""
import csv
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from depwatch.github import GitHubClient
from depwatch.models import RepositoryData
from depwatch.store import RepositoryStore


logger = logging.getLogger(__name__)

CSV_FILENAME = "se2builds-export.csv"
CSV_SEARCH_PATHS = [
    Path("data") / CSV_FILENAME,
    Path("packages") / "scripts" / "data" / CSV_FILENAME,
    Path(__file__).resolve().parent.parent / "data" / CSV_FILENAME,
]
DEFAULT_CSV_PATH = CSV_SEARCH_PATHS[0]

ORIGIN_COLUMN = 'data-origin'


@dataclass
class ImportSummary:
    processed: int = 0
    skipped: int = 0
    saved: int = 0
    errors: int = 0


def resolve_csv_path(csv_path: Optional[str] = None) -> Path:
    """
    Pick the export file to import.

    An explicit path is used as given. Otherwise the first existing entry of
    CSV_SEARCH_PATHS wins, falling back to DEFAULT_CSV_PATH so the missing
    file is reported under its usual name.
    """
    if csv_path:
        return Path(csv_path).expanduser()
    for candidate in CSV_SEARCH_PATHS:
        if candidate.exists():
            return candidate
    return DEFAULT_CSV_PATH


def read_csv_rows(csv_path: Path) -> List[Dict[str, str]]:
    """
    Read the export file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, 'r', newline='', encoding='utf-8-sig') as f:
        reader = csv.DictReader(f, delimiter=';')
        return [
            {(k or '').strip(): (v or '').strip() for k, v in row.items()}
            for row in reader
        ]


class CsvImporter:
    """Imports an export file row by row, fetching fresh metadata."""

    def __init__(
        self,
        client: GitHubClient,
        csv_path: Path = DEFAULT_CSV_PATH,
        pause: float = 0.8,
        sleep: Optional[Callable[[float], None]] = None
    ):
        self.client = client
        self.csv_path = Path(csv_path)
        self.pause = pause
        self.sleep = sleep or getattr(client, 'sleep', time.sleep)

    def run(self, store: RepositoryStore) -> ImportSummary:
        logger.info(f"Reading CSV file: {self.csv_path}")
        rows = read_csv_rows(self.csv_path)
        logger.info(f"Found {len(rows)} rows in CSV file")

        summary = ImportSummary()
        total = len(rows)

        for i, row in enumerate(rows, start=1):
            progress = f"[{i}/{total}]"
            summary.processed += 1
            full_name = row.get('full_name', '')

            try:
                if store.url_exists(row.get('url', '')):
                    logger.info(f"{progress} Skipping {row.get('url')} (already exists)")
                    summary.skipped += 1
                    continue

                logger.info(f"{progress} Processing {full_name}...")
                meta = self.client.get_repo(full_name)
                if not meta:
                    logger.warning(f"{progress} Failed to fetch metadata for {full_name}")
                    summary.errors += 1
                    self.sleep(self.pause)
                    continue

                origin = row.get(ORIGIN_COLUMN) or 'csv-import'
                record = RepositoryData.from_github(meta, origin)
                store.upsert_repository(record)
                summary.saved += 1
                logger.info(f"{progress} Saved {record.full_name} with source: {origin}")
            except Exception as e:
                logger.error(f"{progress} Error processing {full_name}: {e}")
                summary.errors += 1

            # Rate limiting delay
            self.sleep(self.pause)

        return summary
