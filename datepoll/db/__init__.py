from datepoll.db.core import _get_connection, close_pool, get_pool_stats, init_pool
from datepoll.db.events import (
    create_event,
    delete_response,
    get_admin_code,
    get_event,
    get_event_with_responses,
    get_responses,
    update_event_details,
    upsert_response,
)

__all__ = [
    "_get_connection",
    "close_pool",
    "create_event",
    "delete_response",
    "get_admin_code",
    "get_event",
    "get_event_with_responses",
    "get_pool_stats",
    "get_responses",
    "init_pool",
    "update_event_details",
    "upsert_response",
]
