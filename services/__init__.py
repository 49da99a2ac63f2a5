from flask import current_app

from extensions import db
from services.memberships import MembershipManager
from services.payments import PaymentService
from services.tiers import TierRegistry


# Services are built per request from the app's config and the request-scoped session.
# The gateway client is created once in create_app and kept in app.extensions['yookassa'].

def get_gateway():
    return current_app.extensions['yookassa']


def membership_manager():
    return MembershipManager(db.session)


def tier_registry():
    return TierRegistry(db.session)


def payment_service():
    config = current_app.config
    return PaymentService(
        session=db.session,
        gateway=get_gateway(),
        memberships=membership_manager(),
        frontend_url=config['FRONTEND_URL'],
        currency=config.get('PAYMENT_CURRENCY', 'RUB'),
        verify_webhooks=config.get('YOOKASSA_VERIFY_WEBHOOKS', True),
    )
