# dependencies/database.py

from fastapi import HTTPException
from supabase import Client

from core.change_feed import ChangeFeed, change_feed
from core.supabase_client import get_supabase_client


def get_db_client() -> Client:
    """
    FastAPI dependency: a Supabase client for this request.
    Routes pass it explicitly into the service layer.
    """
    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")
    return client


def get_change_feed() -> ChangeFeed:
    return change_feed
