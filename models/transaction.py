import enum
from extensions import db
from utils.helpers import new_uuid, utcnow

class TransactionStatusEnum(enum.Enum):
    """
    Enumeration for the possible statuses of a payment attempt.
    Values match the payment statuses reported by the gateway.
    """
    PENDING = 'pending'                         # Created locally, waiting for the gateway.
    WAITING_FOR_CAPTURE = 'waiting_for_capture' # Authorized by the gateway, not yet settled.
    SUCCEEDED = 'succeeded'                     # Settled. Terminal.
    CANCELED = 'canceled'                       # Declined, expired or cancelled. Terminal.

    @staticmethod
    def from_gateway_status(status_str):
        """
        Maps a gateway payment status string to a TransactionStatusEnum member.
        Returns None for statuses this service does not track.
        """
        if not status_str:
            return None
        try:
            return TransactionStatusEnum(status_str.lower())
        except ValueError:
            return None

    @property
    def is_terminal(self):
        return self in (TransactionStatusEnum.SUCCEEDED, TransactionStatusEnum.CANCELED)


# Forward-only state machine. Anything not listed here is a backward or sideways move and is refused.
ALLOWED_TRANSITIONS = {
    TransactionStatusEnum.PENDING: {
        TransactionStatusEnum.WAITING_FOR_CAPTURE,
        TransactionStatusEnum.SUCCEEDED,
        TransactionStatusEnum.CANCELED,
    },
    TransactionStatusEnum.WAITING_FOR_CAPTURE: {
        TransactionStatusEnum.SUCCEEDED,
        TransactionStatusEnum.CANCELED,
    },
    TransactionStatusEnum.SUCCEEDED: set(),
    TransactionStatusEnum.CANCELED: set(),
}


def statuses_allowed_before(target):
    """Returns the statuses from which `target` may be entered."""
    return [source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets]


class Transaction(db.Model):
    """
    A single payment attempt for a community subscription tier.

    The row is written as PENDING before the gateway is called, receives the
    gateway's payment id once (on the first successful gateway response), and
    afterwards is only moved forward by the webhook handler.
    """
    __tablename__ = 'transactions'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)

    # --- Who bought what ---
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    community_id = db.Column(db.String(36), db.ForeignKey('communities.id'), nullable=False, index=True)
    subscription_tier_id = db.Column(db.String(36), db.ForeignKey('subscription_tiers.id'), nullable=False, index=True)

    # --- Money ---
    amount = db.Column(db.Integer, nullable=False) # Minor units (kopecks).
    currency = db.Column(db.String(3), nullable=False, default='RUB')

    # --- Gateway state ---
    status = db.Column(db.Enum(TransactionStatusEnum), nullable=False, default=TransactionStatusEnum.PENDING, index=True)
    provider = db.Column(db.String(50), nullable=False, default='yookassa')
    # Set exactly once from the gateway's create-payment response. Webhooks are matched on this column.
    provider_payment_id = db.Column(db.String(100), unique=True, nullable=True, index=True)
    # Sent to the gateway as the Idempotence-Key header; unique per creation attempt.
    idempotency_key = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship('User')
    community = db.relationship('Community')
    subscription_tier = db.relationship('SubscriptionTier')

    def can_transition_to(self, new_status):
        """Checks whether moving from the current status to `new_status` is a forward transition."""
        return new_status in ALLOWED_TRANSITIONS.get(self.status, set())

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'communityId': self.community_id,
            'subscriptionTierId': self.subscription_tier_id,
            'amount': self.amount,
            'currency': self.currency,
            'status': self.status.value,
            'provider': self.provider,
            'providerPaymentId': self.provider_payment_id,
            'description': self.description,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Transaction {self.id} - {self.amount} {self.currency} - Status {self.status.value}>'
