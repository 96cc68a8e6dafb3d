"""
Entitlement lookup backed by the application configuration.
"""

from typing import Iterable


class StaticEntitlements:
    """
    Treats a fixed set of caregiver ids as premium.

    Stands in for the subscription storefront, which only ever answers
    whether an account is premium.
    """

    def __init__(self, premium_accounts: Iterable[str] = ()):
        self._premium = {account for account in premium_accounts}

    def is_premium(self, user_id: str) -> bool:
        return user_id in self._premium
