"""
Centralized settings and path configuration for AutoQuote pricing.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

PACKAGE_DATA_DIR = Path(__file__).resolve().parent.parent / 'data'


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes')


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Collaborator data files
    rules_csv: Path
    products_csv: Path
    partners_csv: Path
    transactions_path: Path

    # Engine tunables
    max_candidates_per_line: int = 32
    max_workers: int = 1

    # Logging
    log_level: str = 'INFO'
    json_logs: bool = False

    @classmethod
    def load(cls, project_root: Optional[Path] = None, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and AUTOQUOTE_* environment variables."""
        root = project_root or get_project_root()

        env_data_dir = os.environ.get('AUTOQUOTE_DATA_DIR')
        if data_dir is None:
            data_dir = Path(env_data_dir) if env_data_dir else PACKAGE_DATA_DIR

        return cls(
            project_root=root,
            data_dir=data_dir,
            rules_csv=data_dir / 'pricing_rules.csv',
            products_csv=data_dir / 'products.csv',
            partners_csv=data_dir / 'partners.csv',
            transactions_path=data_dir / 'outputs' / 'transactions.jsonl',
            max_candidates_per_line=int(os.environ.get('AUTOQUOTE_MAX_CANDIDATES', 32)),
            max_workers=int(os.environ.get('AUTOQUOTE_MAX_WORKERS', 1)),
            log_level=os.environ.get('AUTOQUOTE_LOG_LEVEL', 'INFO').upper(),
            json_logs=_env_bool('AUTOQUOTE_JSON_LOGS', False),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
