"""Mini README: Core package initializer for the Instant Bazaar.

The bazaar lets a single authority sell goods to, and buy goods from, many
peers that share vendor inventories and wallets. Subpackages:

    * ``currency`` - denominations, change making and wallets.
    * ``ledger`` - settings, inventory and balance persistence adapters.
    * ``vendors`` - vendor records and stock generation.
    * ``transactions`` - the authoritative purchase/sale coordinator.
    * ``messaging`` - broadcast channel, message shapes and peer helpers.
    * ``interface`` - FastAPI surface for peers and the authority.

Only the logger factory is re-exported here so importing the package stays
free of web framework dependencies.
"""

from .logging_utils import get_logger

__all__ = ["get_logger"]
