"""Ordering bounded context: order placement and the order lifecycle.

Places orders against the product catalog (stock checked and withdrawn in
the same transaction that persists the order), and governs the order's
status lifecycle afterwards: processing, shipment, delivery, cancellation.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
