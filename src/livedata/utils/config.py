"""
Settings for the live data service.

Values come from the process environment (a local .env is loaded on import).
When ENVIRONMENT=production, keys missing from the environment are looked up
in AWS SSM Parameter Store under AWS_SSM_PREFIX.
"""

import logging
import os
from typing import Callable, List, Optional, TypeVar

from dotenv import load_dotenv

load_dotenv()

T = TypeVar('T')

TRUTHY = frozenset({'true', '1', 'yes', 'on'})


class ConfigurationError(Exception):
    """A required setting could not be resolved."""


class Config:
    """Reads settings from the environment, or from SSM in production."""

    def __init__(self):
        self.environment = os.getenv('ENVIRONMENT', 'local')
        self._ssm_client = None

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def is_local(self) -> bool:
        return self.environment == 'local'

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the raw string for ``key``, or ``default`` when unset."""
        if key in os.environ or not self.is_production:
            return os.environ.get(key, default)
        return self._read_parameter(key, default)

    def _parameter_store(self):
        if self._ssm_client is None:
            import boto3
            region = os.getenv('AWS_REGION', 'us-east-1')
            self._ssm_client = boto3.client('ssm', region_name=region)
        return self._ssm_client

    def _read_parameter(self, key: str, default: Optional[str]) -> Optional[str]:
        name = os.getenv('AWS_SSM_PREFIX', '/waylight') + '/' + key
        try:
            found = self._parameter_store().get_parameter(Name=name, WithDecryption=True)
        except Exception as e:
            if default is None:
                raise ConfigurationError(
                    f"Parameter store lookup for '{key}' ({name}) failed: {type(e).__name__}: {e}"
                ) from e
            logging.warning("Parameter store lookup for %s failed (%s: %s), using default",
                            name, type(e).__name__, e)
            return default
        return found['Parameter']['Value']

    def _typed(self, key: str, default: T, convert: Callable[[str], T]) -> T:
        raw = self.get(key, str(default))
        try:
            return convert(raw)
        except (ValueError, TypeError):
            logging.warning("Setting %s=%r is not a valid %s, using %r",
                            key, raw, type(default).__name__, default)
            return default

    def get_int(self, key: str, default: int) -> int:
        return self._typed(key, default, int)

    def get_float(self, key: str, default: float) -> float:
        return self._typed(key, default, float)

    def get_bool(self, key: str, default: bool) -> bool:
        """Anything outside true/1/yes/on (case-insensitive) reads as False."""
        return self._typed(key, default, lambda raw: raw.strip().lower() in TRUTHY)

    def get_list(self, key: str, default: List[str]) -> List[str]:
        """Split a comma-separated setting, dropping blank entries."""
        raw = self.get(key, ','.join(default))
        if not raw:
            return list(default)
        return [part.strip() for part in raw.split(',') if part.strip()]


config = Config()

# Database: DATABASE_URL wins when set; otherwise DB_HOST selects MySQL, and with
# neither we fall back to a local SQLite file.
DATABASE_URL = config.get('DATABASE_URL', '')
DB_HOST = config.get('DB_HOST', '')
DB_PORT = config.get_int('DB_PORT', 3306)
DB_NAME = config.get('DB_NAME', 'waylight_live_dev')
DB_USER = config.get('DB_USER', 'root')
DB_PASSWORD = config.get('DB_PASSWORD', '')
SQLITE_PATH = config.get('SQLITE_PATH', 'livedata.db')

# Upstream sources
THEMEPARKS_WIKI_API_BASE_URL = config.get('THEMEPARKS_WIKI_API_BASE_URL', 'https://api.themeparks.wiki/v1')
QUEUE_TIMES_API_BASE_URL = config.get('QUEUE_TIMES_API_BASE_URL', 'https://queue-times.com/en-US')
THRILL_DATA_BASE_URL = config.get(
    'THRILL_DATA_BASE_URL',
    'https://www.thrill-data.com/trip-planning/crowd-calendar'
)
HTTP_TIMEOUT_SECONDS = config.get_float('HTTP_TIMEOUT_SECONDS', 10.0)
USER_AGENT = config.get('USER_AGENT', 'Waylight/1.0 (Live Data Sync)')

# Flask
FLASK_ENV = config.get('FLASK_ENV', 'development')
FLASK_DEBUG = config.get_bool('FLASK_DEBUG', False)
SECRET_KEY = config.get('SECRET_KEY', 'dev-secret-key-change-in-production')

LOG_LEVEL = config.get('LOG_LEVEL', 'INFO')

# Background sync settings
SYNC_INTERVAL_MINUTES = config.get_int('SYNC_INTERVAL_MINUTES', 15)
SYNC_ENABLED_PARKS = config.get_list('SYNC_ENABLED_PARKS', [])  # empty = every mapped park
SYNC_THEMEPARKS_ENABLED = config.get_bool('SYNC_THEMEPARKS_ENABLED', True)
SYNC_QUEUE_TIMES_ENABLED = config.get_bool('SYNC_QUEUE_TIMES_ENABLED', True)
SYNC_RETRY_ATTEMPTS = config.get_int('SYNC_RETRY_ATTEMPTS', 3)
SYNC_RETRY_DELAY_MS = config.get_int('SYNC_RETRY_DELAY_MS', 5000)
SYNC_RETENTION_HOURS = config.get_int('SYNC_RETENTION_HOURS', 24)

# Bulk import settings
IMPORT_DELAY_SECONDS = config.get_float('IMPORT_DELAY_SECONDS', 1.0)
