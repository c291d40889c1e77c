"""
Loyalty platform adapters.

The ledger gateway and the CRM line-item mirror talk to the Salesforce org
over httpx and authenticate with the OAuth client-credentials grant.
"""

from .auth import ClientCredentialsAuth, LoyaltyPlatformSettings, TokenCache
from .client import PlatformRestClient
from .ledger import SalesforceLedgerGateway
from .mirror import SalesforceLineItemMirror

__all__ = [
    "ClientCredentialsAuth",
    "LoyaltyPlatformSettings",
    "PlatformRestClient",
    "SalesforceLedgerGateway",
    "SalesforceLineItemMirror",
    "TokenCache",
]
