"""
Auction House Package

Core imports are lazily loaded. For direct module access, import from
submodules:

    from auctionhouse.ledger import Ledger, TokenProgram, MetadataProgram
    from auctionhouse.marketplace import MarketplaceProgram
    from auctionhouse.exceptions import MarketplaceError
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'MarketplaceProgram':
        from .marketplace import MarketplaceProgram
        return MarketplaceProgram
    elif name == 'Ledger':
        from .ledger import Ledger
        return Ledger
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'MarketplaceError':
        from .exceptions import MarketplaceError
        return MarketplaceError
    raise AttributeError(f"module 'auctionhouse' has no attribute {name!r}")

__all__ = ['MarketplaceProgram', 'Ledger', 'load_config', 'MarketplaceError']
