"""
cush/services/stats_service.py

Purpose: Back-office dashboard counts

- Users, documents and applications counted by prefix scan (SCAN, never KEYS)
- Index keys (email pointers, per-user lists, application document lists) are skipped
- All-or-nothing: any store or parse failure aborts the whole computation
"""

import json
from typing import Any, Dict, Iterable, Tuple

from cush.core.exceptions import CushError, ExternalServiceError
from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import KeyValueStore, get_store
from utils.constants import (
    DOCUMENT_PENDING,
    LOAN_PENDING_STATUSES,
    POLICE_CERTIFICATE_PENDING_STATUSES,
)

logger = get_logger(__name__)


async def _tally(store: KeyValueStore, record_keys: Iterable[str], pending_statuses: Tuple[str, ...]) -> Dict[str, int]:
    total = 0
    pending = 0
    for key in record_keys:
        raw = await store.get(key)
        if raw is None:
            # Deleted between the scan and the read
            continue
        record = json.loads(raw)
        total += 1
        if record.get("status") in pending_statuses:
            pending += 1
    return {"total": total, "pending": pending}


async def compute_stats() -> Dict[str, Any]:
    """
    Computes the admin dashboard statistics.

    Returns:
        {
            "users": int,
            "documents": {"total", "pending"},
            "applications": {
                "loans": {"total", "pending"},
                "policeCertificates": {"total", "pending"}
            }
        }

    Raises:
        ExternalServiceError: If any fetch or parse fails (no partial result)
    """
    store = get_store()

    try:
        user_keys = [k for k in await store.scan_keys(keys.user_scan_pattern()) if keys.is_user_record_key(k)]

        document_keys = [
            k for k in await store.scan_keys(keys.document_scan_pattern())
            if keys.is_document_record_key(k)
        ]
        loan_keys = [
            k for k in await store.scan_keys(keys.application_scan_pattern(keys.LOAN))
            if keys.is_application_record_key(k, keys.LOAN)
        ]
        police_keys = [
            k for k in await store.scan_keys(keys.application_scan_pattern(keys.POLICE_CERTIFICATE))
            if keys.is_application_record_key(k, keys.POLICE_CERTIFICATE)
        ]

        documents = await _tally(store, document_keys, (DOCUMENT_PENDING,))
        loans = await _tally(store, loan_keys, LOAN_PENDING_STATUSES)
        police_certificates = await _tally(store, police_keys, POLICE_CERTIFICATE_PENDING_STATUSES)

    except (CushError, ValueError, AttributeError) as e:
        logger.error(f"Failed to compute admin stats: {e}", exc_info=True)
        raise ExternalServiceError("Failed to fetch admin statistics") from e

    stats = {
        "users": len(user_keys),
        "documents": documents,
        "applications": {
            "loans": loans,
            "policeCertificates": police_certificates,
        },
    }
    logger.debug(f"Admin stats computed: {stats}")
    return stats
