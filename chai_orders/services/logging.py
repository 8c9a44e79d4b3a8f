import json
import sys
from datetime import datetime, timezone


def log_event(level: str, event: str, **fields) -> None:
    """Write one JSON line per domain event to stdout."""
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level.lower(),
        "service": "chai-orders",
        "event": event,
    }
    payload.update(fields or {})
    try:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    except OSError:
        # best-effort logging
        pass
