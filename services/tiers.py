from sqlalchemy import select

from models.subscription_tier import SubscriptionTier


class TierRegistry:
    """
    Read-only view of a community's subscription tiers.
    Only active tiers are ever returned.
    """

    def __init__(self, session):
        self.session = session

    def active_tiers(self, community_id):
        """Active tiers of the community, in display order (sort_order, then monthly price)."""
        stmt = (
            select(SubscriptionTier)
            .filter_by(community_id=community_id, is_active=True)
            .order_by(SubscriptionTier.sort_order, SubscriptionTier.price_monthly)
        )
        return list(self.session.scalars(stmt))

    def tier_catalog(self, community_id):
        """Active tiers keyed by id, as consumed by the access evaluator."""
        return {tier.id: tier for tier in self.active_tiers(community_id)}

    def tiers_granting_course(self, course):
        """Active tiers of the course's community whose entitlements include the course."""
        return [tier for tier in self.active_tiers(course.community_id) if tier.grants_course(course.id)]

    @staticmethod
    def direct_checkout_url(tiers):
        """
        Returns the external payment URL of the first tier that defines one, else None.
        Purchases through such a URL bypass the gateway and webhook flow entirely.
        """
        for tier in tiers:
            if tier.payment_url:
                return tier.payment_url
        return None
