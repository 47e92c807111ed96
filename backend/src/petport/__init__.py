"""PetPort backend: pet profiles, subscriptions, referrals and gift memberships."""

__version__ = "1.0.0"
