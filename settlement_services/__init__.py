"""
settlement_services -- orchestration over the settlement engines.

Usage:
    from settlement_config import get_active_settings
    from settlement_services import SettlementBatch, SettlementService

    service = SettlementService(get_active_settings())
    report = service.settle(SettlementBatch(reports, ownerships, priors))
"""

from settlement_services.batch_loader import load_batch, parse_batch
from settlement_services.settlement_service import (
    SettlementBatch,
    SettlementMode,
    SettlementReport,
    SettlementService,
)

__all__ = [
    "SettlementBatch",
    "SettlementMode",
    "SettlementReport",
    "SettlementService",
    "load_batch",
    "parse_batch",
]
