"""
Supabase access for the integration engine.

One cached client serves the freight store (fletes, clientes, gastos,
cotizaciones), mapping configurations and operation logs.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables reported by the health check: (label, table)
HEALTH_TABLES = (
    ("fletes_count", "fletes"),
    ("mappings_count", "configuraciones_mapeo"),
    ("logs_count", "integracion_logs"),
)


class StoreConnectionError(Exception):
    """The Supabase client could not be created."""


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client.

    Call get_supabase_client.cache_clear() to reconnect.

    Raises:
        StoreConnectionError: If the client cannot be created
    """
    logger.info("connecting_to_supabase", url=settings.supabase_url[:30] + "...")

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error("supabase_connection_failed", error=str(e), error_type=type(e).__name__)
        raise StoreConnectionError(f"Failed to connect to Supabase: {e}") from e

    logger.info("supabase_connected")
    return client


def check_connection() -> dict:
    """
    Row counts of the integration tables, or the error that prevented them.

    Never raises; used by startup and /health.
    """
    try:
        client = get_supabase_client()
        status = {"status": "healthy"}
        for label, table in HEALTH_TABLES:
            result = client.table(table).select("id", count="exact").limit(1).execute()
            status[label] = result.count
        return status

    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
