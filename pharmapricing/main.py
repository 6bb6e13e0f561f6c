# pharmapricing/main.py

from fastapi import FastAPI

from .core.config import settings
from .core.logging import setup_logging
from .routers import pricing, promotions

setup_logging(settings.LOG_LEVEL)

# Tables are owned by the platform's migrations, not created here.
app = FastAPI(
    title="Pharma Pricing API",
    description="Unit-price resolution and promotion usage ledger."
)

app.include_router(pricing.router)
app.include_router(promotions.router)


@app.get("/")
def read_root():
    """
    Root endpoint; confirms the API is up.
    """
    return {"message": "Pharma pricing service is running"}
