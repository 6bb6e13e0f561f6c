# pharmapricing/crud/crud_catalog.py

from .base import CRUDBase
from .. import models, schemas


class CRUDProduct(CRUDBase[models.Product, schemas.ProductCreate]):
    """Catalog lookups. The catalog owns products; the engine never writes them."""
    pass


product = CRUDProduct(models.Product)
