from .crud_catalog import product
from .crud_customer import customer
from .crud_price_override import price_override
from .crud_price_rule import price_rule
from .crud_promotion import promotion
