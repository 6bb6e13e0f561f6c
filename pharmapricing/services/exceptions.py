# pharmapricing/services/exceptions.py

class PricingPreconditionError(ValueError):
    """The calculation cannot start: something it depends on does not exist."""
    pass

class ProductNotFoundError(PricingPreconditionError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with id {product_id} not found.")

class CustomerNotFoundError(PricingPreconditionError):
    def __init__(self, customer_id: int):
        self.customer_id = customer_id
        super().__init__(f"Customer with id {customer_id} not found.")
