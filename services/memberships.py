from flask import current_app
from sqlalchemy import or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from exceptions import InvalidState, NotFound
from models.membership import Membership, MembershipStatusEnum
from models.subscription_tier import SubscriptionTier
from services.signals import membership_changed
from utils.helpers import add_months, new_uuid, utcnow

# Every paid renewal extends the membership by one calendar month, whatever the tier's yearly price.
RENEWAL_PERIOD = 'monthly'
RENEWAL_MONTHS = 1

# Dialects with native INSERT ... ON CONFLICT DO UPDATE support.
_UPSERT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


class MembershipManager:
    """
    Owns the Membership lifecycle: activation/renewal after payment, free-tier opt-in,
    and lazy expiry on read.

    All writes go through conditional statements keyed on the (user, community)
    uniqueness constraint or on the values that were actually read, so concurrent
    webhook deliveries or admin edits never create duplicates or flip a freshly
    renewed membership to expired.
    """

    def __init__(self, session, clock=utcnow):
        self.session = session
        self.clock = clock
        self._pending_signals = []

    # --- Reads ---

    def _load(self, user_id, community_id):
        # populate_existing: conditional UPDATEs bypass the identity map, so always refresh from the row.
        stmt = (
            select(Membership)
            .filter_by(user_id=user_id, community_id=community_id)
            .execution_options(populate_existing=True)
        )
        return self.session.scalars(stmt).first()

    def get_membership(self, user_id, community_id):
        """Returns the (user, community) membership row in whatever status it is, or None."""
        return self._load(user_id, community_id)

    def get_active_membership(self, user_id, community_id):
        """
        Returns the user's live membership in the community, or None.

        A membership past its `expires_at` is flipped to EXPIRED here (there is no
        background sweep). The flip only applies if the row still carries the
        expiry date that was read; if a renewal landed in between, the renewed
        row is returned instead.
        """
        membership = self._load(user_id, community_id)
        if membership is None or membership.status != MembershipStatusEnum.ACTIVE:
            return None

        now = self.clock()
        if not membership.is_expired(now):
            return membership

        if self._expire(membership.id, membership.expires_at):
            current_app.logger.info(f"Membership {membership.id} (user {user_id}, community {community_id}) expired at {membership.expires_at.isoformat()}; status set to EXPIRED.")
            membership = self._load(user_id, community_id)
            self._send(membership, 'expired')
            return None

        # The row changed between our read and the conditional update (e.g. a renewal webhook).
        current_app.logger.info(f"Membership {membership.id} changed while being expired; re-reading instead of expiring.")
        membership = self._load(user_id, community_id)
        if membership is not None and membership.is_active(now):
            return membership
        return None

    def list_memberships(self, user_id, community_id=None):
        """Returns all memberships of a user, optionally limited to one community."""
        stmt = select(Membership).filter_by(user_id=user_id)
        if community_id:
            stmt = stmt.filter_by(community_id=community_id)
        stmt = stmt.order_by(Membership.started_at.desc())
        return list(self.session.scalars(stmt))

    # --- Writes ---

    def _expire(self, membership_id, observed_expires_at):
        """
        Sets status to EXPIRED only if the row is still ACTIVE with the expiry date the caller observed.

        Returns:
            bool: True if the row was expired by this call.
        """
        stmt = (
            update(Membership)
            .where(
                Membership.id == membership_id,
                Membership.status == MembershipStatusEnum.ACTIVE,
                Membership.expires_at == observed_expires_at,
            )
            .values(status=MembershipStatusEnum.EXPIRED, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(stmt)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            current_app.logger.error(f"Error expiring membership {membership_id}: {e}", exc_info=True)
            raise
        return result.rowcount == 1

    def _upsert(self, user_id, community_id, values, overwrite_if=None):
        """
        Inserts or updates the (user, community) membership in one statement.

        Uses INSERT ... ON CONFLICT DO UPDATE where the dialect supports it. On other
        databases, falls back to update-then-insert and retries the update if a
        concurrent insert wins the unique constraint.

        Args:
            overwrite_if (optional): SQL condition an existing row must meet to be
                                     overwritten. Rows that fail it are left alone.

        Returns:
            str or None: 'inserted' or 'updated', or None if an existing row failed `overwrite_if`.
        """
        new_id = new_uuid()
        insert = _UPSERT_INSERTS.get(self.session.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(Membership).values(
                id=new_id,
                user_id=user_id,
                community_id=community_id,
                created_at=values['updated_at'],
                **values,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=['user_id', 'community_id'], set_=values, where=overwrite_if,
            ).returning(Membership.id)
            written_id = self.session.execute(stmt).scalar()
            if written_id is None:
                return None
            return 'inserted' if written_id == new_id else 'updated'

        update_stmt = (
            update(Membership)
            .where(Membership.user_id == user_id, Membership.community_id == community_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if overwrite_if is not None:
            update_stmt = update_stmt.where(overwrite_if)
        if self.session.execute(update_stmt).rowcount:
            return 'updated'
        try:
            with self.session.begin_nested():
                self.session.add(Membership(id=new_id, user_id=user_id, community_id=community_id,
                                            created_at=values['updated_at'], **values))
        except IntegrityError:
            # Another writer inserted the row first (or it exists and failed overwrite_if).
            return 'updated' if self.session.execute(update_stmt).rowcount else None
        return 'inserted'

    def activate_or_renew(self, user_id, community_id, tier_id, provider_payment_id, commit=True):
        """
        Activates or renews the user's membership after a successful payment.

        The membership (new or existing) becomes ACTIVE on `tier_id`, starting now and
        expiring one calendar month from now, and remembers `provider_payment_id`.

        Args:
            commit (bool, optional): Commit the session. The webhook handler passes False
                                     so the transaction status change and the membership
                                     upsert are committed together. The change signal is
                                     then held back until `send_pending_signals()`.

        Returns:
            Membership: The refreshed membership row.
        """
        now = self.clock()
        outcome = self._upsert(user_id, community_id, {
            'subscription_tier_id': tier_id,
            'status': MembershipStatusEnum.ACTIVE,
            'started_at': now,
            'expires_at': add_months(now, RENEWAL_MONTHS),
            'renewal_period': RENEWAL_PERIOD,
            'external_subscription_id': provider_payment_id,
            'updated_at': now,
        })
        if commit:
            self._commit(f"activating membership for user {user_id} in community {community_id}")

        membership = self._load(user_id, community_id)
        reason = 'activated' if outcome == 'inserted' else 'renewed'
        current_app.logger.info(f"Membership {membership.id} {reason} for user {user_id} in community {community_id}: tier {tier_id}, expires {membership.expires_at.isoformat()}, payment {provider_payment_id}.")
        if commit:
            self._send(membership, reason)
        else:
            self._pending_signals.append((membership, reason))
        return membership

    def join_free_tier(self, user_id, community_id, tier_id):
        """
        Opts the user into a free tier. Free memberships never expire.

        Raises:
            NotFound: If the tier does not exist in the community.
            InvalidState: If the tier is not free or inactive, or if the user already
                          holds a live paid membership in the community.
        """
        tier = self.session.get(SubscriptionTier, tier_id)
        if tier is None or tier.community_id != community_id:
            raise NotFound('Subscription tier not found')
        if not tier.is_active:
            raise InvalidState('Subscription tier is not active')
        if not tier.is_free:
            raise InvalidState('Subscription tier is not free')

        current = self.get_active_membership(user_id, community_id)
        if current is not None and current.expires_at is not None:
            raise InvalidState('An active paid membership already exists for this community')

        now = self.clock()
        # A live paid row is never replaced, even if a renewal landed after the check above.
        not_live_paid = or_(
            Membership.status != MembershipStatusEnum.ACTIVE,
            Membership.expires_at.is_(None),
            Membership.expires_at < now,
        )
        outcome = self._upsert(user_id, community_id, {
            'subscription_tier_id': tier_id,
            'status': MembershipStatusEnum.ACTIVE,
            'started_at': now,
            'expires_at': None,
            'renewal_period': None,
            'external_subscription_id': None,
            'updated_at': now,
        }, overwrite_if=not_live_paid)
        if outcome is None:
            self.session.rollback()
            current_app.logger.info(f"User {user_id} could not join free tier {tier_id}: a paid membership in community {community_id} became active meanwhile.")
            raise InvalidState('An active paid membership already exists for this community')
        self._commit(f"joining free tier {tier_id} for user {user_id}")

        membership = self._load(user_id, community_id)
        current_app.logger.info(f"User {user_id} joined free tier {tier_id} in community {community_id} (membership {membership.id}).")
        self._send(membership, 'joined_free')
        return membership

    # --- Signals ---

    def _send(self, membership, reason):
        membership_changed.send(current_app._get_current_object(), membership=membership, reason=reason)

    def send_pending_signals(self):
        """Sends the change signals held back by `activate_or_renew(commit=False)`. Call after committing."""
        pending, self._pending_signals = self._pending_signals, []
        for membership, reason in pending:
            self._send(membership, reason)

    def discard_pending_signals(self):
        """Drops held-back change signals after a rollback."""
        self._pending_signals = []

    def _commit(self, action):
        try:
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            current_app.logger.error(f"Error committing membership change while {action}: {e}", exc_info=True)
            raise
