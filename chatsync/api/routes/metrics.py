# chatsync/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter

from chatsync.api.utils import require_client
from chatsync.core import state

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """
    Reconciliation and transport counters.

    Returns:
        dict: Counters since process start, including:
            - inbound: accepted / duplicates / self-echoes / malformed frames
            - outbound: composed / transmitted / dropped (not OPEN or send failure)
            - uptime and inbound rate

    Example Response:
        {
            "uptime_hours": 0.5,
            "inbound": {"accepted": 40, "duplicates": 2, "self_echoes": 12, "malformed": 0},
            "outbound": {"composed": 12, "transmitted": 12, "dropped": 0},
            "inbound_per_second": 0.02,
            "connection": "open",
            "subscription": 3
        }
    """
    client = require_client()
    reconciler = client.reconciler
    transport = client.transport

    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    if uptime_seconds > 0:
        inbound_per_second = reconciler.accepted_count / uptime_seconds
    else:
        inbound_per_second = 0

    return {
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "inbound": {
            "accepted": reconciler.accepted_count,
            "duplicates": reconciler.duplicate_count,
            "self_echoes": reconciler.self_echo_count,
            "malformed": transport.malformed_count,
        },
        "outbound": {
            "composed": reconciler.outbound_count,
            "transmitted": transport.sent_count,
            "dropped": transport.dropped_count,
        },
        "inbound_per_second": round(inbound_per_second, 2),
        "connection": transport.state.value,
        "subscription": transport.subscription,
    }
