# core/supabase_client.py

from typing import Optional

from supabase import create_client, Client
from core.config import settings
from core.logging_config import logger


# Tables probed by the health check
HEALTH_TABLES = ["buildings", "profiles", "visitors", "bookings", "amenities"]


# ============================================================
# Supabase Client Factory (ALWAYS service role)
# ============================================================

def get_supabase_client() -> Optional[Client]:
    """
    Creates a Supabase client using the SERVICE ROLE KEY.

    A new client is created on every call; request handlers receive it
    through the ``get_db_client`` dependency and pass it explicitly into
    the service functions. Returns None when credentials are missing.
    """
    supabase_url = settings.SUPABASE_URL
    supabase_key = settings.SUPABASE_SERVICE_ROLE_KEY  # MUST be service-role

    if not supabase_url or not supabase_key:
        logger.error("Missing Supabase credentials")
        logger.error(f"   URL: {supabase_url}")
        logger.error(f"   SERVICE ROLE KEY: {'SET' if supabase_key else 'MISSING'}")
        return None

    try:
        return create_client(supabase_url, supabase_key)
    except Exception as e:
        logger.error(f"Supabase Init Error: {e}", exc_info=True)
        return None


# ============================================================
# Ping Supabase for health checks
# ============================================================

def ping_supabase(client: Optional[Client] = None) -> dict:
    """
    Simple connectivity check.
    Does NOT query auth tables.
    """
    client = client or get_supabase_client()
    if client is None:
        return {"service": "Supabase", "status": "not_configured"}

    results = {}
    status = "ok"

    for t in HEALTH_TABLES:
        try:
            res = client.table(t).select("id").limit(1).execute()
            results[t] = {
                "status": "ok",
                "rows_found": len(res.data or []),
            }
        except Exception as err:
            status = "degraded"
            results[t] = {"status": "error", "detail": str(err)}

    return {
        "service": "Supabase",
        "status": status,
        "tables": results,
    }
