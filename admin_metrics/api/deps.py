"""
Shared endpoint dependencies
Tests swap these through app.dependency_overrides
"""

from admin_metrics.services.data_store import DataStore, SupabaseDataStore
from admin_metrics.services.push_service import PushChannel, get_push_channel


def get_data_store() -> DataStore:
    return SupabaseDataStore()


def get_push() -> PushChannel:
    return get_push_channel()
