"""Activity log service — durable anomaly records for operators.

Responsible for:
- Converting raw Stripe objects, model snapshots and exceptions to JSON
- Writing ActivityLog rows without ever raising into the caller
- Re-adding the entries of a unit of work after its rollback

Functions add to the session but do NOT commit — the caller commits.
"""

import json
import logging

from regpay.extensions import db
from regpay.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


def to_json_safe(value):
    """Convert a value into something the JSON column accepts.

    Models are snapshotted through their to_dict(), exceptions become
    {"error", "type"}; anything else goes through a json round-trip with
    str() as fallback. Stripe objects are converted with their to_dict().
    """
    if value is None:
        return None
    if isinstance(value, BaseException):
        return {"error": str(value), "type": type(value).__name__}
    if hasattr(value, "to_dict") and callable(value.to_dict):
        value = value.to_dict()
    return json.loads(json.dumps(value, default=str))


class ActivityLogger:
    """Writes ActivityLog rows for one unit of work (one webhook delivery)."""

    def __init__(self, category="webhook"):
        self.category = category
        self.entries = []

    def log(self, severity, message, data=None, old_data=None):
        """Record an anomaly. Never raises."""
        try:
            entry = {
                "severity": severity,
                "category": self.category,
                "message": message,
                "data": to_json_safe(data),
                "old_data": to_json_safe(old_data),
            }
            self.entries.append(entry)
            db.session.add(ActivityLog(**entry))
        except Exception:
            logger.exception(f"Failed to write activity log entry: {message}")
            return

        if severity == "ERROR":
            logger.error(f"[{self.category}] {message}")
        else:
            logger.warning(f"[{self.category}] {message}")

    def warning(self, message, data=None, old_data=None):
        self.log("WARNING", message, data=data, old_data=old_data)

    def error(self, message, data=None, old_data=None):
        self.log("ERROR", message, data=data, old_data=old_data)

    def restore(self):
        """Re-add every entry recorded so far.

        Called after the session was rolled back, so anomalies found before
        the failure are still persisted with the final commit.
        """
        for entry in self.entries:
            try:
                db.session.add(ActivityLog(**entry))
            except Exception:
                logger.exception(
                    f"Failed to restore activity log entry: {entry['message']}"
                )
