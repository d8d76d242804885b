import logging
from dataclasses import dataclass
from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy import text
from typing import Dict, Any

logger = logging.getLogger(__name__)

class MonitoredSQLAlchemy(SQLAlchemy):
    """SQLAlchemy with a connectivity probe and pool statistics."""

    def get_pool_stats(self) -> Dict[str, Any]:
        try:
            pool = self.engine.pool
            return {
                'pool_class': type(pool).__name__,
                'checked_out': pool.checkedout() if hasattr(pool, 'checkedout') else 0,
            }
        except Exception as e:
            logger.error(f"Error getting pool stats: {e}")
            return {'pool_class': None, 'checked_out': 0, 'error': str(e)}

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            result = self.session.execute(text("SELECT 1")).scalar()
            return result == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

db = MonitoredSQLAlchemy()
limiter = Limiter(key_func=get_remote_address)


@dataclass
class KioskServices:
    """Long-lived collaborators shared by every request."""
    store_directory: Any
    watermarker: Any
    report_exporter: Any
    audit_requester: Any
    audit_guard: Any
    workflows: Any


def get_services() -> KioskServices:
    return current_app.extensions['kioskinstall']
