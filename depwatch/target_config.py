"""
Target configuration loader for depwatch.

A target names the toolkit whose dependents are tracked and the search
shards used to find them. Values come from built-in defaults, then an
optional YAML file, then environment overrides.
"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, fields


DEFAULT_SEARCH_TERMS = [
    '"@scaffold-eth/burner-connector"',
    '"burner-connector"',
]

DEFAULT_MANIFEST_FILES = [
    'package.json',
    'package-lock.json',
    'yarn.lock',
    'pnpm-lock.yaml',
]

# Path shards split results to stay under the 1000-result cap per query
DEFAULT_PATH_SHARDS = [
    '',
    '/',
    '/packages/',
    '/apps/',
    '/examples/',
    '/libs/',
    '/modules/',
    '/services/',
]

DEFAULT_FILENAME_PATH_SHARDS = [
    '/nextjs/',
    '/packages/nextjs/',
    '/apps/nextjs/',
    '/examples/nextjs/',
    '/libs/nextjs/',
    '/modules/nextjs/',
    '/services/nextjs/',
]

DEFAULT_SIZE_SHARDS = [
    '0..4096',
    '4097..16384',
    '16385..65536',
    '>65536',
]

DEFAULT_INITIAL_COMMIT_MESSAGE = "Initial commit with 🏗️ Scaffold-ETH 2"


def _split_csv(value: str) -> List[str]:
    """Split a comma-separated override into trimmed, non-empty items."""
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class TargetConfig:
    """Toolkit whose dependents are collected, plus search parameters."""
    owner: str = 'scaffold-eth'
    repo: str = 'burner-connector'
    search_terms: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_TERMS))
    manifest_files: List[str] = field(default_factory=lambda: list(DEFAULT_MANIFEST_FILES))
    path_shards: List[str] = field(default_factory=lambda: list(DEFAULT_PATH_SHARDS))
    filename: str = 'scaffold.config.ts'
    filename_path_shards: List[str] = field(default_factory=lambda: list(DEFAULT_FILENAME_PATH_SHARDS))
    size_shards: List[str] = field(default_factory=lambda: list(DEFAULT_SIZE_SHARDS))
    required_path: str = '/nextjs/'
    initial_commit_message: str = DEFAULT_INITIAL_COMMIT_MESSAGE
    include_forks: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def dependents_url(self) -> str:
        """Dependents listing page (repositories only) for the target."""
        return f"https://github.com/{self.owner}/{self.repo}/network/dependents?dependent_type=REPOSITORY"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TargetConfig':
        """
        Build a target from a mapping, ignoring unknown keys.

        ``package_names`` is accepted as an alias for ``search_terms``;
        bare names are wrapped in quotes so code search matches them exactly.

        Raises:
            ValueError: If a list-valued field is not a list
        """
        data = dict(data or {})
        if 'package_names' in data and 'search_terms' not in data:
            data['search_terms'] = [f'"{name}"' for name in data.pop('package_names')]

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}

        for key in ('search_terms', 'manifest_files', 'path_shards',
                    'filename_path_shards', 'size_shards'):
            if key in kwargs and not isinstance(kwargs[key], list):
                raise ValueError(f"Target field '{key}' must be a list")

        if 'required_path' in kwargs and kwargs['required_path'] is None:
            kwargs['required_path'] = ''

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> 'TargetConfig':
        """
        Load target configuration from YAML file.

        Args:
            yaml_path: Path to target YAML config file

        Returns:
            TargetConfig instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If the file is not a YAML mapping
        """
        if not yaml_path.exists():
            raise FileNotFoundError(f"Target config not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid target config in {yaml_path}: must be a YAML dict")

        return cls.from_dict(data)

    def apply_env_overrides(self, environ: Optional[Dict[str, str]] = None) -> 'TargetConfig':
        """Apply the per-collector environment overrides in place."""
        env = os.environ if environ is None else environ

        if env.get('REPO_OWNER'):
            self.owner = env['REPO_OWNER']
        if env.get('REPO_NAME'):
            self.repo = env['REPO_NAME']

        terms = _split_csv(env.get('DEP_QUERY_TERMS', ''))
        if terms:
            self.search_terms = terms

        if env.get('FILENAME'):
            self.filename = env['FILENAME']

        shards = _split_csv(env.get('PATH_SHARDS', ''))
        if shards:
            self.filename_path_shards = shards

        if 'REQUIRED_PATH' in env:
            self.required_path = env['REQUIRED_PATH']

        sizes = _split_csv(env.get('SIZE_SHARDS', ''))
        if sizes:
            self.size_shards = sizes

        if env.get('INCLUDE_FORKS'):
            self.include_forks = env['INCLUDE_FORKS'].strip().lower() == 'true'

        return self


def load_target(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> TargetConfig:
    """
    Resolve the active target.

    Args:
        path: Optional YAML file; defaults are used when omitted
        environ: Environment mapping (defaults to os.environ)

    Returns:
        TargetConfig with environment overrides applied
    """
    target = TargetConfig.from_yaml(path) if path else TargetConfig()
    return target.apply_env_overrides(environ)
