import logging
from typing import Iterable, List
from services.scoring.config_manager import ScoringConfigManager
from services.scoring.outcome import InspectionRecord

logger = logging.getLogger(__name__)

class InspectionDataExtractor:
    """Extracts and normalizes engine input from Establishment and Inspection rows"""

    def __init__(self, config_manager: ScoringConfigManager = None):
        self.config_manager = config_manager or ScoringConfigManager()

    def extract_risk_tier(self, establishment) -> int:
        """Risk tier of an establishment, medium (2) when missing or invalid"""
        tier = self.config_manager.normalize_risk_tier(establishment.risk_level)
        if establishment.risk_level != tier:
            logger.debug(f"Establishment {establishment.id} has risk level {establishment.risk_level!r}, scoring as {tier}")
        return tier

    def extract_records(self, inspections: Iterable) -> List[InspectionRecord]:
        """Convert inspection rows to records, most recent first"""
        records = []
        for inspection in inspections:
            if inspection.inspection_date is None:
                logger.warning(f"Skipping inspection {inspection.id} without a date")
                continue
            records.append(inspection.to_record())

        records.sort(key=lambda record: record.inspection_date, reverse=True)
        return records
