"""Improvement requests sent by the commercial team."""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .store_client import DataStoreClient

logger = logging.getLogger(__name__)

FEEDBACK_TABLE = "mejoras_comercial_table"


@dataclass
class ImprovementRequest:
    sector: str
    request: str
    requester: str

    def to_row(self) -> Dict[str, Any]:
        return {
            "sector": self.sector,
            "mejora_solicitada": self.request,
            "persona_Solicitante": self.requester,
        }


def submit_improvement_request(client: DataStoreClient, request: ImprovementRequest) -> Dict[str, Any]:
    """
    Store an improvement request.

    Raises:
        ValueError: If any field is blank.
        StoreError: If the store rejects the insert.
    """
    blank = [name for name, value in vars(request).items() if not (value or "").strip()]
    if blank:
        raise ValueError(f"Improvement request is missing: {', '.join(blank)}")
    row = client.insert(FEEDBACK_TABLE, request.to_row())
    logger.info(f"Improvement request from {request.requester} stored")
    return row
