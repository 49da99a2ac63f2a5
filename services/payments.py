import hashlib

from flask import current_app
from sqlalchemy import select, update

from exceptions import InvalidState, NotFound, UpstreamError
from models.community import Community
from models.subscription_tier import SubscriptionTier
from models.transaction import Transaction, TransactionStatusEnum, statuses_allowed_before
from utils.helpers import new_uuid, to_minor_units, utcnow

# Placeholder a client may put in its returnUrl; replaced with the new transaction id.
TRANSACTION_ID_PLACEHOLDER = '{transactionId}'


def build_idempotency_key(user_id, community_id, tier_id, moment, transaction_id):
    """
    Derives the gateway Idempotence-Key for one payment creation attempt.

    The key is a SHA-256 hex digest (64 characters, the gateway's limit) over the
    purchase parameters, the attempt timestamp and the transaction id, so every
    attempt gets its own key while retries of the same HTTP call reuse it.
    """
    raw = '|'.join([str(user_id), str(community_id), str(tier_id), moment.isoformat(), str(transaction_id)])
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()


class PaymentService:
    """
    Subscription payments: creates Transactions and gateway payments, and turns
    gateway webhook notifications into Transaction status changes and membership renewals.

    Transaction status only ever moves forward (see models.transaction.ALLOWED_TRANSITIONS).
    Every status change is a conditional UPDATE on the statuses it may come from, so a
    replayed or concurrent webhook for an already-settled payment changes nothing and
    never renews a membership twice.
    """

    def __init__(self, session, gateway, memberships, frontend_url, currency='RUB', verify_webhooks=True, clock=utcnow):
        self.session = session
        self.gateway = gateway
        self.memberships = memberships
        self.frontend_url = (frontend_url or '').rstrip('/')
        self.currency = currency
        self.verify_webhooks = verify_webhooks
        self.clock = clock

    # --- Payment creation ---

    def _return_url(self, return_url, transaction_id):
        if not return_url:
            return f'{self.frontend_url}/payment/callback?transactionId={transaction_id}'
        return return_url.replace(TRANSACTION_ID_PLACEHOLDER, transaction_id)

    def create_subscription_payment(self, user_id, community_id, tier_id, return_url=None):
        """
        Starts a subscription purchase for a community tier.

        Free tiers are joined immediately and tiers with their own payment URL are
        handed back as a direct link; neither creates a Transaction. Otherwise a
        PENDING Transaction is stored first, then the gateway payment is created with
        that Transaction's idempotency key.

        Args:
            user_id (str): The buyer.
            community_id (str): The community the tier belongs to.
            tier_id (str): The SubscriptionTier to buy.
            return_url (str, optional): Where the gateway sends the payer back to.
                                        Defaults to the frontend payment callback page.

        Returns:
            dict: {'confirmationUrl', 'transactionId', 'paymentId'} for gateway payments,
                  {'confirmationUrl', 'transactionId': None, 'paymentId': None, 'isDirectLink': True}
                  for direct-link tiers, or {'success': True, 'isFree': True, 'membership'} for free tiers.

        Raises:
            NotFound: Community or tier does not exist.
            InvalidState: Tier is inactive or belongs to another community.
            UpstreamError: The gateway call failed. The Transaction stays PENDING.
        """
        community = self.session.get(Community, community_id)
        if community is None:
            raise NotFound('Community not found')
        tier = self.session.get(SubscriptionTier, tier_id)
        if tier is None:
            raise NotFound('Subscription tier not found')
        if tier.community_id != community.id:
            raise InvalidState('Subscription tier does not belong to this community')
        if not tier.is_active:
            raise InvalidState('Subscription tier is not active')

        if tier.is_free:
            membership = self.memberships.join_free_tier(user_id, community_id, tier_id)
            return {'success': True, 'isFree': True, 'membership': membership.to_dict(self.clock())}

        if tier.payment_url:
            current_app.logger.info(f"Tier {tier_id} uses a direct payment URL; skipping gateway payment for user {user_id}.")
            return {
                'confirmationUrl': tier.payment_url,
                'transactionId': None,
                'paymentId': None,
                'isDirectLink': True,
            }

        now = self.clock()
        transaction = Transaction(
            id=new_uuid(),
            user_id=user_id,
            community_id=community_id,
            subscription_tier_id=tier_id,
            amount=to_minor_units(tier.price_monthly),
            currency=self.currency,
            status=TransactionStatusEnum.PENDING,
            provider='yookassa',
            description=f'Subscription "{tier.name}" to community "{community.name}"',
        )
        transaction.idempotency_key = build_idempotency_key(user_id, community_id, tier_id, now, transaction.id)
        self.session.add(transaction)
        self._commit(f"creating transaction for user {user_id}, tier {tier_id}")
        current_app.logger.info(f"Transaction {transaction.id} created (pending): user {user_id}, community {community_id}, tier {tier_id}, amount {transaction.amount} {transaction.currency}.")

        # UpstreamError propagates as is; the transaction simply stays pending.
        payment = self.gateway.create_payment(
            amount=transaction.amount,
            currency=transaction.currency,
            description=transaction.description,
            return_url=self._return_url(return_url, transaction.id),
            metadata={
                'userId': user_id,
                'communityId': community_id,
                'subscriptionTierId': tier_id,
                'transactionId': transaction.id,
            },
            idempotency_key=transaction.idempotency_key,
        )

        payment_id = payment.get('id')
        confirmation_url = (payment.get('confirmation') or {}).get('confirmation_url')
        if not payment_id:
            current_app.logger.error(f"Gateway response for transaction {transaction.id} has no payment id: {payment}")
            raise UpstreamError('Payment provider response has no payment id', upstream_body=str(payment))

        # The provider id is written once; a second writer (e.g. a retried request) leaves it alone.
        result = self.session.execute(
            update(Transaction)
            .where(Transaction.id == transaction.id, Transaction.provider_payment_id.is_(None))
            .values(provider_payment_id=payment_id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self._commit(f"storing payment id {payment_id} on transaction {transaction.id}")
        if result.rowcount != 1:
            current_app.logger.warning(f"Transaction {transaction.id} already had a provider payment id; kept it (gateway returned {payment_id}).")
        else:
            current_app.logger.info(f"Transaction {transaction.id} linked to gateway payment {payment_id}.")

        return {
            'confirmationUrl': confirmation_url,
            'transactionId': transaction.id,
            'paymentId': payment_id,
        }

    # --- Webhooks ---

    def handle_webhook(self, payload):
        """
        Applies a gateway payment notification.

        The Transaction is found by the gateway's payment id, never by ids the payload
        carries in its metadata. With webhook verification on, the payment is re-fetched
        from the gateway and its reported status is used instead of the payload's.

        Returns:
            dict: {'success': True} once the notification is applied or known to be a no-op.

        Raises:
            InvalidState: Payload has no payment object or id.
            NotFound: No Transaction carries this payment id.
            UpstreamError: Verification fetch failed (the gateway will redeliver).
        """
        payment = payload.get('object') if isinstance(payload, dict) else None
        if not isinstance(payment, dict) or not isinstance(payment.get('id'), str) or not payment['id'].strip():
            current_app.logger.warning(f"Rejected malformed webhook payload: {payload!r:.500}")
            raise InvalidState('Invalid webhook data')

        payment_id = payment['id']
        claimed_status = payment.get('status')

        transaction = self.session.scalars(
            select(Transaction).filter_by(provider_payment_id=payment_id)
        ).first()
        if transaction is None:
            current_app.logger.warning(f"Webhook for unknown payment {payment_id} (status {claimed_status}); no matching transaction.")
            raise NotFound('Transaction not found')

        status_str = claimed_status
        if self.verify_webhooks:
            verified = self.gateway.get_payment(payment_id)
            status_str = verified.get('status')
            if status_str != claimed_status:
                current_app.logger.warning(f"Webhook for payment {payment_id} claimed status '{claimed_status}' but gateway reports '{status_str}'; using gateway status.")

        new_status = TransactionStatusEnum.from_gateway_status(status_str)
        if new_status is None or new_status == TransactionStatusEnum.PENDING:
            current_app.logger.info(f"Webhook for payment {payment_id} with status '{status_str}' needs no action (transaction {transaction.id}).")
            return {'success': True}

        return self._apply_status(transaction, new_status, payment_id)

    def _apply_status(self, transaction, new_status, payment_id):
        now = self.clock()
        stmt = (
            update(Transaction)
            .where(
                Transaction.id == transaction.id,
                Transaction.status.in_(statuses_allowed_before(new_status)),
            )
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(stmt)
            if result.rowcount != 1:
                self.session.rollback()
                self.session.refresh(transaction)
                if transaction.status == new_status:
                    current_app.logger.info(f"Replayed webhook for payment {payment_id}: transaction {transaction.id} already {new_status.value}; acknowledged without changes.")
                else:
                    current_app.logger.warning(f"Ignored webhook moving transaction {transaction.id} from {transaction.status.value} to {new_status.value} (not a forward transition).")
                return {'success': True}

            if new_status == TransactionStatusEnum.SUCCEEDED:
                # Same database transaction as the status change: both land, or neither does.
                self.memberships.activate_or_renew(
                    transaction.user_id,
                    transaction.community_id,
                    transaction.subscription_tier_id,
                    payment_id,
                    commit=False,
                )
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            self.memberships.discard_pending_signals()
            current_app.logger.error(f"Error applying status {new_status.value} to transaction {transaction.id}: {e}", exc_info=True)
            raise

        self.memberships.send_pending_signals()
        if new_status == TransactionStatusEnum.WAITING_FOR_CAPTURE:
            current_app.logger.info(f"Payment {payment_id} authorized and waiting for capture (transaction {transaction.id}).")
        else:
            current_app.logger.info(f"Transaction {transaction.id} moved to {new_status.value} by webhook for payment {payment_id}.")
        return {'success': True}

    def _commit(self, action):
        try:
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            current_app.logger.error(f"Database error while {action}: {e}", exc_info=True)
            raise
