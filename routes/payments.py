import time

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from exceptions import BillingError, InvalidState
from extensions import db
from forms import CreateSubscriptionForm, form_error_message
from models.webhook_log import WebhookLog
from services import membership_manager, payment_service
from utils.helpers import utcnow
from utils.security import sanitize_headers

# Blueprint for subscription payments and the gateway webhook.
payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')


@payments_bp.route('/create-subscription', methods=['POST'])
@login_required
def create_subscription():
    """
    Starts a subscription purchase for the current user.

    Body: {communityId, subscriptionTierId, returnUrl?}.
    Returns {confirmationUrl, transactionId, paymentId}; the client redirects the payer to
    confirmationUrl. Free tiers answer {success, isFree} and direct-link tiers carry isDirectLink.
    """
    form = CreateSubscriptionForm()
    if not form.validate():
        raise InvalidState(form_error_message(form))

    result = payment_service().create_subscription_payment(
        user_id=current_user.id,
        community_id=str(form.community_id.data).strip(),
        tier_id=str(form.subscription_tier_id.data).strip(),
        return_url=form.return_url.data or None,
    )
    return jsonify(result)


@payments_bp.route('/webhook/yookassa', methods=['POST'])
def yookassa_webhook():
    """
    Receives YooKassa payment notifications.

    Always answers: 200 {success: true} once applied (or recognised as a replay),
    404 for unknown payments, 400 for malformed bodies, 500 if processing failed and
    the gateway should redeliver. Every delivery is recorded in the webhook log.
    """
    started = time.perf_counter()
    payload = request.get_json(silent=True)
    error_message = None

    try:
        body = payment_service().handle_webhook(payload)
        status_code = 200
    except BillingError as e:
        body = e.to_dict()
        status_code = int(e.status_code)
        error_message = e.message
    except Exception as e: # Unexpected failure; answered with 500 so the gateway retries.
        current_app.logger.error(f"Unhandled error processing YooKassa webhook: {e}", exc_info=True)
        body = {'error': 'Internal server error'}
        status_code = 500
        error_message = str(e)

    processing_time_ms = int((time.perf_counter() - started) * 1000)
    _record_webhook('yookassa', payload, status_code, body, error_message, processing_time_ms)
    return jsonify(body), status_code


def _record_webhook(name, payload, status_code, body, error_message, processing_time_ms):
    """Stores one webhook delivery. Failures are logged and never change the response."""
    try:
        db.session.add(WebhookLog(
            webhook_name=name,
            request_url=request.url,
            request_method=request.method,
            request_headers=sanitize_headers(request.headers),
            request_payload=payload,
            response_status=status_code,
            response_body=body,
            error_message=error_message,
            processing_time_ms=processing_time_ms,
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record {name} webhook delivery: {e}", exc_info=True)


@payments_bp.route('/memberships', methods=['GET'])
@login_required
def list_memberships():
    """
    Lists the current user's memberships, optionally filtered by ?communityId=.
    Each entry carries the derived isExpired / isActive flags.
    """
    community_id = request.args.get('communityId')
    now = utcnow()
    memberships = membership_manager().list_memberships(current_user.id, community_id)
    return jsonify({'memberships': [membership.to_dict(now) for membership in memberships]})
