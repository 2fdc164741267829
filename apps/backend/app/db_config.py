"""
Database configuration module.
Reads DATABASE_URL and the job collection names from the environment.
"""

import os
import re
import logging
from urllib.parse import urlparse, unquote

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "job_postings"
DEFAULT_TEST_COLLECTION = "job_postings_test"

_COLLECTION_RE = re.compile(r'^[a-z_][a-z0-9_]*$')


class DBConfig:
    """Database configuration for the job document store"""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL")
        self.collection = os.getenv("JOBRELAY_COLLECTION", DEFAULT_COLLECTION)
        self.test_collection = os.getenv("JOBRELAY_TEST_COLLECTION", DEFAULT_TEST_COLLECTION)

        env = os.getenv("JOBRELAY_ENV", "production").lower()
        flag = os.getenv("JOBRELAY_USE_TEST_COLLECTION")
        if flag is None:
            self.use_test_collection = env == "dev"
        else:
            self.use_test_collection = flag.lower() == "true"

        for name in (self.collection, self.test_collection):
            if not _COLLECTION_RE.match(name):
                raise ValueError(f"Invalid collection name: {name!r}")

        if self.database_url:
            try:
                parsed = urlparse(self.database_url)
                logger.info(f"[db_config] DATABASE_URL configured: {parsed.scheme}://{parsed.username}:***@{parsed.hostname}:{parsed.port or 5432}{parsed.path}")
            except ValueError as e:
                logger.info(f"[db_config] DATABASE_URL configured (unable to parse for logging: {e})")
        else:
            logger.warning("[db_config] DATABASE_URL not set - using in-memory job store")

    @property
    def is_db_enabled(self) -> bool:
        return bool(self.database_url)

    @property
    def collection_name(self) -> str:
        """Collection jobs are written to (test collection in dev/test runs)"""
        return self.test_collection if self.use_test_collection else self.collection

    def get_connection_params(self) -> dict | None:
        """
        Get database connection parameters.
        Returns dict with host, port, database, user, password.
        """
        if not self.database_url:
            return None

        try:
            parsed = urlparse(self.database_url)
        except ValueError as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            return None

        if not parsed.hostname:
            return None

        params = {
            "host": parsed.hostname,
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip('/') or 'postgres',
            "user": parsed.username or 'postgres',
        }

        if parsed.password:
            params["password"] = unquote(parsed.password)

        return params


# Global instance
db_config = DBConfig()
