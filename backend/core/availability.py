import logging
from typing import Dict, List, Any

from core.database import DatabaseManager
from core.errors import ValidationError
from core.models import AvailabilityRule
from core.slots import ensure_valid_slot, slot_order

logger = logging.getLogger(__name__)


class AvailabilityService:
    """A doctor's advertised weekly pattern (day_of_week 0-6, Sunday=0)"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get(self, doctor_id: str) -> Dict[str, Any]:
        rules = await self.db.get_availability_rules(doctor_id)
        rules.sort(key=lambda r: (r["day_of_week"], slot_order(r["time_slot"])))

        by_day: Dict[int, List[str]] = {}
        time_slots: List[str] = []
        for rule in rules:
            by_day.setdefault(rule["day_of_week"], []).append(rule["time_slot"])
            if rule["time_slot"] not in time_slots:
                time_slots.append(rule["time_slot"])

        return {
            "available_days": list(by_day),
            "time_slots": time_slots,
            "details": by_day,
        }

    async def replace(self, doctor_id: str, available_days: List[int], time_slots: List[str]) -> int:
        """Replace every rule of the doctor with days x slots"""
        for day in available_days:
            if not 0 <= day <= 6:
                raise ValidationError(f"Invalid day of week: {day}")
        for label in time_slots:
            ensure_valid_slot(label)

        rules = [
            AvailabilityRule(day_of_week=day, time_slot=label).to_dict()
            for day in available_days
            for label in time_slots
        ]
        total = await self.db.replace_availability_rules(doctor_id, rules)
        logger.info(f"[Availability] {doctor_id} now has {total} weekly slots")
        return total

    async def clear(self, doctor_id: str):
        await self.db.clear_availability_rules(doctor_id)
        logger.info(f"[Availability] {doctor_id} cleared")
