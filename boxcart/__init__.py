"""
boxcart — box-based cart pricing, guest carts and exactly-once merge.

    from boxcart import pricing as Pr    # Box/wholesale pricing rules
    from boxcart import cache as C       # Time-boxed caching
    from boxcart import cart as K        # Cart values + guest cart store
    from boxcart import reconcile as V   # Catalog reconciliation
    from boxcart import merge as M       # Guest → server cart merge
    from boxcart import remote as R      # Server cart over HTTP
    from boxcart import catalog as P     # Product truth

    engine = await CartEngine.open(EngineConfig())
"""

from boxcart import pricing
from boxcart import cache
from boxcart import cart
from boxcart import reconcile
from boxcart import merge
from boxcart import remote
from boxcart import catalog
from boxcart._types import (
    Lazy,
    Pure,
    ProductId,
    LineId,
    Clock,
)
from boxcart.config import EngineConfig, EngineSettings
from boxcart.engine import CartEngine, CartMode

__version__ = "0.1.0"

__all__ = (
    "pricing",
    "cache",
    "cart",
    "reconcile",
    "merge",
    "remote",
    "catalog",
    "Lazy",
    "Pure",
    "ProductId",
    "LineId",
    "Clock",
    "EngineConfig",
    "EngineSettings",
    "CartEngine",
    "CartMode",
)
