"""
Collectors that discover dependent repositories and maintain stored rows.
"""
from depwatch.collectors.base import Collector, CollectionSummary, enrich_repositories
from depwatch.collectors.dependents_api import DependentsApiCollector
from depwatch.collectors.dependents_graphql import DependentsGraphqlCollector
from depwatch.collectors.filename_search import FilenameSearchCollector
from depwatch.collectors.initial_commits import InitialCommitsCollector

__all__ = [
    'Collector',
    'CollectionSummary',
    'enrich_repositories',
    'DependentsApiCollector',
    'DependentsGraphqlCollector',
    'FilenameSearchCollector',
    'InitialCommitsCollector',
]
