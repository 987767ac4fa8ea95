"""Marketplace bounded context — checkout, orders and service quotes.

Owns the listing stock ledger, the checkout session lifecycle that splits a
cart into per-seller orders, and the quote request lifecycle for services.
"""

import os

from protean.domain import Domain

from marketplace.config import settings
from marketplace.utils.logging import configure_logging

# The test overlay of domain.toml also quiets logging
configure_logging(
    environment=os.getenv("PROTEAN_ENV") or settings.environment,
    level=settings.log_level,
    log_dir=settings.log_dir or None,
)

marketplace = Domain(name="marketplace")
