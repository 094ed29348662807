"""Activity log model.

Append-only record of anomalies met while reconciling Stripe webhooks
(missing records, malformed data, inconsistent state). Rows are never
updated or deleted by the application.
"""

import uuid

from regpay.extensions import db


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    # -- Valid severities --
    SEVERITIES = ["INFO", "WARNING", "ERROR"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    severity = db.Column(db.String(20), nullable=False)  # INFO | WARNING | ERROR
    category = db.Column(db.String(50), nullable=False)  # e.g. "webhook"
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=True)  # raw triggering object
    old_data = db.Column(db.JSON, nullable=True)  # prior state snapshot
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now(), index=True
    )

    def __repr__(self):
        return f"<ActivityLog {self.severity} {self.message}>"
