"""
Slot availability engine.

Every doctor shares the same fixed catalogue of bookable slot labels grouped
into three bands. A doctor's weekly AvailabilityRule set is not consulted here.
"""

import logging
from typing import Dict, List

from core.errors import ValidationError
from core.utils import require_date

logger = logging.getLogger(__name__)


SLOT_CATALOGUE: Dict[str, List[str]] = {
    "morning": ["09:00 AM", "09:30 AM", "10:00 AM", "10:30 AM", "11:00 AM", "11:30 AM"],
    "afternoon": ["02:00 PM", "02:30 PM", "03:00 PM", "03:30 PM", "04:00 PM", "04:30 PM"],
    "evening": ["05:00 PM", "05:30 PM", "06:00 PM", "06:30 PM", "07:00 PM"],
}


def all_slot_labels() -> List[str]:
    return [label for labels in SLOT_CATALOGUE.values() for label in labels]


def is_valid_slot(label: str) -> bool:
    return label in all_slot_labels()


def ensure_valid_slot(label: str) -> str:
    if not is_valid_slot(label):
        raise ValidationError(f"Unknown time slot: {label}")
    return label


def slot_order(label: str) -> int:
    """Position of a label in the catalogue, unknown labels sort last"""
    labels = all_slot_labels()
    return labels.index(label) if label in labels else len(labels)


def filter_available(booked_times: List[str]) -> Dict[str, List[str]]:
    booked = set(booked_times)
    return {
        band: [label for label in labels if label not in booked]
        for band, labels in SLOT_CATALOGUE.items()
    }


class SlotAvailabilityEngine:
    def __init__(self, db):
        self.db = db

    async def available_slots(self, doctor_id: str, date: str) -> Dict[str, List[str]]:
        """Catalogue slots still bookable for a doctor on a date"""
        day = require_date(date)

        # An unknown doctor has no bookings, so every slot comes back free
        booked_times = await self.db.get_booked_times(doctor_id, day)
        logger.debug(f"[Slots] doctor={doctor_id} date={day} booked={booked_times}")
        return filter_available(booked_times)
