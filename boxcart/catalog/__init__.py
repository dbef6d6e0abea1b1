"""
Catalog — where current product truth comes from.

    from boxcart import catalog as P

    catalog = P.HttpCatalog(transport)
    snapshots = await catalog.fetch_product_snapshots([1, 2, 3])
"""

from __future__ import annotations

from boxcart.catalog._types import CatalogErrorKind, CatalogError, CatalogSource
from boxcart.catalog._http import HttpCatalog

__all__ = ("CatalogErrorKind", "CatalogError", "CatalogSource", "HttpCatalog")
