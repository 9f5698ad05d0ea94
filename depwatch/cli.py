#!/usr/bin/env python3
"""
depwatch - collect and browse repositories that depend on a toolkit

Usage:
    depwatch migrate
    depwatch dependents-api --include-forks
    depwatch dependents-graphql --output dependents.csv --save
    depwatch scrape-dependents --target targets/burner-connector.yaml
    depwatch check-online
    depwatch serve --port 8000
"""
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import requests
import uvicorn

from depwatch.collectors.base import CollectionSummary
from depwatch.collectors.check_online import OnlineChecker
from depwatch.collectors.default_branch import DefaultBranchUpdater
from depwatch.collectors.dependents_api import DependentsApiCollector
from depwatch.collectors.dependents_graphql import DependentsGraphqlCollector
from depwatch.collectors.filename_search import FilenameSearchCollector
from depwatch.collectors.import_csv import CsvImporter, resolve_csv_path
from depwatch.collectors.initial_commits import InitialCommitsCollector
from depwatch.collectors.scrape_dependents import ScrapeDependentsCollector
from depwatch.config import ConfigError, DepwatchConfig, get_config
from depwatch.dashboard import api as dashboard_api
from depwatch.github import GitHubAPIError, GitHubClient, MAX_SEARCH_PAGES
from depwatch.migrate import run_migrations
from depwatch.store import RepositoryStore
from depwatch.target_config import TargetConfig, load_target


logger = logging.getLogger(__name__)

COLLECTORS = {
    'dependents-api': DependentsApiCollector,
    'filename-search': FilenameSearchCollector,
    'initial-commits': InitialCommitsCollector,
    'scrape-dependents': ScrapeDependentsCollector,
}


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def apply_backend_override(config: DepwatchConfig, backend: Optional[str]):
    """Let --backend win over DEPWATCH_BACKEND."""
    if not backend:
        return
    if backend == "postgres" and not config.postgres_url:
        raise ConfigError("POSTGRES_URL is required for the postgres backend")
    config.backend = backend


def resolve_target(args, config: DepwatchConfig) -> TargetConfig:
    path = Path(args.target).expanduser() if args.target else config.target_path
    target = load_target(path)
    if args.include_forks:
        target.include_forks = True
    return target


def open_store(config: DepwatchConfig) -> RepositoryStore:
    store = RepositoryStore.from_config(config)
    store.init_schema()
    return store


def install_signal_handlers(store: RepositoryStore):
    """Close the store and exit cleanly on SIGINT/SIGTERM."""
    def handle(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        try:
            store.close()
        finally:
            sys.exit(0)

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def make_client(config: DepwatchConfig) -> GitHubClient:
    return GitHubClient(token=config.require_github_token(), user_agent=config.user_agent)


def print_collection_summary(title: str, summary: CollectionSummary):
    print()
    print(title)
    print("=" * 50)
    print(f"Found: {summary.found}")
    print(f"Fetched metadata: {summary.enriched}")
    print(f"Saved (new): {summary.saved}")
    print(f"Updated (existing): {summary.updated}")
    print(f"Errors: {summary.errors}")


def cmd_migrate(args, config: DepwatchConfig) -> int:
    if config.backend == "postgres":
        count = run_migrations(config.postgres_url)
        print(f"✅ Applied {count} migration(s)")
    else:
        store = open_store(config)
        store.close()
        print(f"✅ SQLite schema ready at {config.sqlite_path}")
    return 0


def cmd_collect(args, config: DepwatchConfig) -> int:
    target = resolve_target(args, config)
    client = make_client(config)
    store = open_store(config)
    install_signal_handlers(store)

    try:
        collector = COLLECTORS[args.command](client, target=target, concurrency=args.concurrency)
        summary = collector.run(store)
    finally:
        store.close()

    print_collection_summary(f"Run summary ({collector.source})", summary)
    if isinstance(collector, InitialCommitsCollector) and collector.total_count > MAX_SEARCH_PAGES * 100:
        print(
            f"Note: search reported {collector.total_count} results; "
            f"only the first {MAX_SEARCH_PAGES * 100} are reachable"
        )
    return 0


def cmd_dependents_graphql(args, config: DepwatchConfig) -> int:
    target = resolve_target(args, config)
    collector = DependentsGraphqlCollector(make_client(config), target=target)
    collector.fetch_dependents()
    written = collector.write_csv(Path(args.output))
    print(f"✅ Saved {written} dependents to {args.output}")

    if args.save:
        store = open_store(config)
        install_signal_handlers(store)
        try:
            summary = collector.run(store)
        finally:
            store.close()
        print_collection_summary(f"Run summary ({collector.source})", summary)
    return 0


def cmd_import_csv(args, config: DepwatchConfig) -> int:
    importer = CsvImporter(make_client(config), csv_path=resolve_csv_path(args.csv))
    store = open_store(config)
    install_signal_handlers(store)

    try:
        summary = importer.run(store)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print()
    print("Import summary")
    print("=" * 50)
    print(f"Processed: {summary.processed}")
    print(f"Skipped (already exists): {summary.skipped}")
    print(f"Saved: {summary.saved}")
    print(f"Errors: {summary.errors}")
    return 0


def cmd_check_online(args, config: DepwatchConfig) -> int:
    store = open_store(config)
    install_signal_handlers(store)

    try:
        summary = OnlineChecker().run(store)
    finally:
        store.close()

    print()
    print("Online check summary")
    print("=" * 50)
    print(f"Total checked: {summary.total}")
    print(f"Marked deleted: {summary.marked_deleted}")
    print(f"Restored: {summary.restored}")
    print(f"Unchanged: {summary.unchanged}")
    print(f"Errors: {summary.errors}")
    return 0


def cmd_update_default_branch(args, config: DepwatchConfig) -> int:
    updater = DefaultBranchUpdater(make_client(config))
    store = open_store(config)
    install_signal_handlers(store)

    try:
        summary = updater.run(store)
    finally:
        store.close()

    print()
    print("Default branch update summary")
    print("=" * 50)
    print(f"Total processed: {summary.total}")
    print(f"Updated: {summary.updated}")
    print(f"Unchanged: {summary.unchanged}")
    print(f"Null from metadata: {summary.null_from_meta}")
    print(f"Errors: {summary.errors}")
    return 0


def cmd_serve(args, config: DepwatchConfig) -> int:
    dashboard_api.initialize_store(open_store(config))
    logger.info(f"Dashboard store initialized (backend: {config.backend})")
    uvicorn.run(
        dashboard_api.app,
        host=args.host or config.host,
        port=args.port or config.port,
        reload=False
    )
    return 0



def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--target', help='Target YAML file (default: $DEPWATCH_TARGET or built-in defaults)')
    common.add_argument('--log-level', help='Logging level (default: $DEPWATCH_LOG_LEVEL or INFO)')
    common.add_argument('--backend', choices=['postgres', 'sqlite'], help='Storage backend override')
    common.add_argument('--include-forks', action='store_true', help='Keep forked repositories')
    common.add_argument('--concurrency', type=int, default=1, help='Metadata worker threads (default: 1)')

    parser = argparse.ArgumentParser(
        description='Collect and browse repositories that depend on a toolkit'
    )
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    subparsers.add_parser('migrate', parents=[common], help='Create or migrate the repositories table')
    subparsers.add_parser('dependents-api', parents=[common], help='Code search over dependency manifests')

    graphql_parser = subparsers.add_parser(
        'dependents-graphql', parents=[common], help='GraphQL code search, written to CSV'
    )
    graphql_parser.add_argument('--output', default='dependents_api.csv', help='CSV output path')
    graphql_parser.add_argument('--save', action='store_true', help='Also upsert the rows into the store')

    subparsers.add_parser('filename-search', parents=[common], help='Code search for the scaffold config file')
    subparsers.add_parser('initial-commits', parents=[common], help='Commit search for the scaffold initial commit')
    subparsers.add_parser('scrape-dependents', parents=[common], help='Scrape the dependents page with a browser')

    import_parser = subparsers.add_parser('import-csv', parents=[common], help='Import a semicolon CSV export')
    import_parser.add_argument(
        '--csv',
        help='CSV file to import (default: first se2builds-export.csv found in data/, packages/scripts/data/ or depwatch/data/)'
    )

    subparsers.add_parser('check-online', parents=[common], help='Mark deleted repositories and restore revived ones')
    subparsers.add_parser('update-default-branch', parents=[common], help='Refresh default branches')

    serve_parser = subparsers.add_parser('serve', parents=[common], help='Run the dashboard')
    serve_parser.add_argument('--host', help='Bind host (default: $DEPWATCH_HOST or 0.0.0.0)')
    serve_parser.add_argument('--port', type=int, help='Bind port (default: $DEPWATCH_PORT or 8000)')

    return parser


HANDLERS = {
    'migrate': cmd_migrate,
    'dependents-api': cmd_collect,
    'dependents-graphql': cmd_dependents_graphql,
    'filename-search': cmd_collect,
    'initial-commits': cmd_collect,
    'scrape-dependents': cmd_collect,
    'import-csv': cmd_import_csv,
    'check-online': cmd_check_online,
    'update-default-branch': cmd_update_default_branch,
    'serve': cmd_serve,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = get_config()
        configure_logging(args.log_level or config.log_level)
        apply_backend_override(config, args.backend)
        code = HANDLERS[args.command](args, config)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except GitHubAPIError as e:
        print(f"❌ GitHub API error: {e}", file=sys.stderr)
        sys.exit(1)
    except requests.RequestException as e:
        print(f"❌ Network error: {e}", file=sys.stderr)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
