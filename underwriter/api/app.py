"""FastAPI application setup."""

import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from underwriter.api.routes import decisions
from underwriter.config import PRODUCT_DESCRIPTION, PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION
from underwriter.core.service import get_decision_service

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{PRODUCT_NAME} API",
    description=PRODUCT_DESCRIPTION,
    version=PRODUCT_VERSION,
)

# Rate limiter shared with the decision routes
app.state.limiter = decisions.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.on_event("startup")
def startup():
    """Load the decision model so definition errors stop the server early."""
    service = get_decision_service()
    logger.info(
        f"Serving decision model '{service.model.name}' "
        f"({', '.join(service.model.decision_names)})"
    )


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "name": PRODUCT_NAME,
        "version": PRODUCT_VERSION,
        "status": "ok",
        "tagline": PRODUCT_TAGLINE,
    }


# Decision routes serve at the root, one path per model
app.include_router(decisions.router, tags=["decisions"])
