from extensions import db
from utils.helpers import utcnow

class WebhookLog(db.Model):
    """
    One received webhook delivery and the response the service gave to it.

    Kept for support and reconciliation; headers are stored sanitized.
    """
    __tablename__ = 'webhook_logs'

    id = db.Column(db.Integer, primary_key=True)
    webhook_name = db.Column(db.String(100), nullable=False, index=True) # e.g. 'yookassa'.
    request_url = db.Column(db.String(2048), nullable=True)
    request_method = db.Column(db.String(10), nullable=True)
    request_headers = db.Column(db.JSON, nullable=True)
    request_payload = db.Column(db.JSON, nullable=True)
    response_status = db.Column(db.Integer, nullable=False)
    response_body = db.Column(db.JSON, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    processing_time_ms = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f'<WebhookLog {self.webhook_name} - {self.response_status}>'
