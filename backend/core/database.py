import logging
from datetime import datetime
from typing import Dict, List, Optional, Any

from motor.motor_asyncio import AsyncIOMotorClient
from bson import ObjectId

from core import config
from core.models import ACTIVE_STATUSES
from core.utils import to_object_id

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Async MongoDB store for users, services, availability, appointments and
    messages. A client can be passed in (tests use an in-memory one); otherwise
    one is created from MONGODB_URI on connect.
    """

    def __init__(self, client=None, db_name: Optional[str] = None):
        self.client = client
        self.db_name = db_name or config.MONGODB_DB_NAME
        self.db = None
        self.connected = False

    async def connect(self):
        """Connect to MongoDB"""
        if self.connected:
            return

        try:
            if self.client is None:
                self.client = AsyncIOMotorClient(config.MONGODB_URI)
                # Test connection
                await self.client.admin.command("ping")

            self.db = self.client[self.db_name]
            self.connected = True

            await self._create_indexes()

            logger.info(f"[Database] Connected to {self.db_name}")

        except Exception as e:
            logger.error(f"[Database] Connection failed: {e}")
            raise

    async def _create_indexes(self):
        """Create database indexes, including the slot uniqueness constraint"""
        try:
            await self.db.users.create_index("email", unique=True)
            await self.db.users.create_index("role")

            # Only one active booking may hold a (doctor, date, time) key;
            # released appointments carry a per-appointment key instead.
            await self.db.appointments.create_index("slot_key", unique=True)
            await self.db.appointments.create_index([("doctor_id", 1), ("date", 1)])
            await self.db.appointments.create_index([("patient_id", 1), ("date", -1)])
            await self.db.appointments.create_index("status")

            await self.db.availability.create_index("doctor_id", unique=True)

            await self.db.messages.create_index([("sender_id", 1), ("receiver_id", 1), ("created_at", -1)])
            await self.db.messages.create_index([("receiver_id", 1), ("is_read", 1)])

        except Exception as e:
            logger.error(f"[Database] Index creation error: {e}")
            raise

    async def ensure_connected(self):
        """Ensure database connection is active"""
        if not self.connected:
            await self.connect()

    # User operations
    async def create_user(self, user_data: Dict) -> ObjectId:
        """Create a new user"""
        await self.ensure_connected()

        try:
            result = await self.db.users.insert_one(user_data)
            return result.inserted_id

        except Exception as e:
            logger.error(f"[Database] Create user error: {e}")
            raise

    async def get_user_by_email(self, email: str) -> Optional[Dict]:
        """Get user by email"""
        await self.ensure_connected()

        try:
            return await self.db.users.find_one({"email": email})

        except Exception as e:
            logger.error(f"[Database] Get user by email error: {e}")
            raise

    async def get_user_by_id(self, user_id: str) -> Optional[Dict]:
        """Get user by ID, None for unknown or malformed ids"""
        await self.ensure_connected()

        oid = to_object_id(user_id)
        if oid is None:
            return None

        try:
            return await self.db.users.find_one({"_id": oid})

        except Exception as e:
            logger.error(f"[Database] Get user by ID error: {e}")
            raise

    async def update_user(self, user_id: str, updates: Dict) -> Optional[Dict]:
        """Update user information and return the new document"""
        await self.ensure_connected()

        try:
            updates["updated_at"] = datetime.utcnow()
            await self.db.users.update_one({"_id": to_object_id(user_id)}, {"$set": updates})
            return await self.get_user_by_id(user_id)

        except Exception as e:
            logger.error(f"[Database] Update user error: {e}")
            raise

    async def list_doctors(self, specialty: Optional[str] = None) -> List[Dict]:
        """Get doctors, newest first"""
        await self.ensure_connected()

        query = {"role": "DOCTOR"}
        if specialty:
            query["specialty"] = specialty

        try:
            cursor = self.db.users.find(query).sort("created_at", -1)
            return await cursor.to_list(length=None)

        except Exception as e:
            logger.error(f"[Database] List doctors error: {e}")
            raise

    # Service operations
    async def create_service(self, service_data: Dict) -> ObjectId:
        await self.ensure_connected()

        try:
            result = await self.db.services.insert_one(service_data)
            return result.inserted_id

        except Exception as e:
            logger.error(f"[Database] Create service error: {e}")
            raise

    async def get_service(self, service_id: str) -> Optional[Dict]:
        await self.ensure_connected()

        oid = to_object_id(service_id)
        if oid is None:
            return None

        try:
            return await self.db.services.find_one({"_id": oid})

        except Exception as e:
            logger.error(f"[Database] Get service error: {e}")
            raise

    async def list_active_services(self) -> List[Dict]:
        await self.ensure_connected()

        try:
            cursor = self.db.services.find({"is_active": True}).sort("name", 1)
            return await cursor.to_list(length=None)

        except Exception as e:
            logger.error(f"[Database] List services error: {e}")
            raise

    async def update_service(self, service_id: str, updates: Dict) -> bool:
        await self.ensure_connected()

        try:
            result = await self.db.services.update_one(
                {"_id": to_object_id(service_id)}, {"$set": updates}
            )
            return result.matched_count > 0

        except Exception as e:
            logger.error(f"[Database] Update service error: {e}")
            raise

    # Availability operations
    async def get_availability_rules(self, doctor_id: str) -> List[Dict]:
        """Active weekly rules of a doctor, ordered by day then slot"""
        await self.ensure_connected()

        try:
            doc = await self.db.availability.find_one({"doctor_id": doctor_id})
            rules = [rule for rule in (doc or {}).get("rules", []) if rule.get("is_active", True)]
            return sorted(rules, key=lambda r: (r["day_of_week"], r["time_slot"]))

        except Exception as e:
            logger.error(f"[Database] Get availability error: {e}")
            raise

    async def replace_availability_rules(self, doctor_id: str, rules: List[Dict]) -> int:
        """Replace the whole rule set of a doctor in one document write"""
        await self.ensure_connected()

        try:
            await self.db.availability.update_one(
                {"doctor_id": doctor_id},
                {"$set": {"rules": rules, "updated_at": datetime.utcnow()}},
                upsert=True,
            )
            return len(rules)

        except Exception as e:
            logger.error(f"[Database] Replace availability error: {e}")
            raise

    async def clear_availability_rules(self, doctor_id: str) -> None:
        await self.ensure_connected()

        try:
            await self.db.availability.delete_many({"doctor_id": doctor_id})

        except Exception as e:
            logger.error(f"[Database] Clear availability error: {e}")
            raise

    # Appointment operations
    async def create_appointment(self, appointment_data: Dict) -> ObjectId:
        """Create a new appointment, DuplicateKeyError if the slot is held"""
        await self.ensure_connected()

        try:
            result = await self.db.appointments.insert_one(appointment_data)
            return result.inserted_id

        except Exception as e:
            logger.error(f"[Database] Create appointment error: {e}")
            raise

    async def get_appointment_by_id(self, appointment_id: str) -> Optional[Dict]:
        await self.ensure_connected()

        oid = to_object_id(appointment_id)
        if oid is None:
            return None

        try:
            return await self.db.appointments.find_one({"_id": oid})

        except Exception as e:
            logger.error(f"[Database] Get appointment by ID error: {e}")
            raise

    async def find_active_appointment(
        self, doctor_id: str, date: str, time: str
    ) -> Optional[Dict]:
        """Get the pending/confirmed appointment holding a slot, if any"""
        await self.ensure_connected()

        try:
            return await self.db.appointments.find_one(
                {
                    "doctor_id": doctor_id,
                    "date": date,
                    "time": time,
                    "status": {"$in": ACTIVE_STATUSES},
                }
            )

        except Exception as e:
            logger.error(f"[Database] Find active appointment error: {e}")
            raise

    async def get_booked_times(self, doctor_id: str, date: str) -> List[str]:
        """Slot labels held by pending/confirmed appointments of a doctor on a date"""
        await self.ensure_connected()

        try:
            cursor = self.db.appointments.find(
                {"doctor_id": doctor_id, "date": date, "status": {"$in": ACTIVE_STATUSES}}
            )
            appointments = await cursor.to_list(length=None)
            return [apt["time"] for apt in appointments]

        except Exception as e:
            logger.error(f"[Database] Get booked times error: {e}")
            raise

    async def find_appointments(
        self, query: Dict, ascending: bool = False, limit: int = 0
    ) -> List[Dict]:
        """Appointments matching a filter, ordered by date"""
        await self.ensure_connected()

        try:
            cursor = self.db.appointments.find(query).sort("date", 1 if ascending else -1)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)

        except Exception as e:
            logger.error(f"[Database] Find appointments error: {e}")
            raise

    async def count_appointments(self, query: Dict) -> int:
        await self.ensure_connected()

        try:
            return await self.db.appointments.count_documents(query)

        except Exception as e:
            logger.error(f"[Database] Count appointments error: {e}")
            raise

    async def distinct_patient_ids(self, doctor_id: str) -> List[str]:
        await self.ensure_connected()

        try:
            return await self.db.appointments.distinct("patient_id", {"doctor_id": doctor_id})

        except Exception as e:
            logger.error(f"[Database] Distinct patients error: {e}")
            raise

    async def update_appointment_status(
        self, appointment_id: ObjectId, status: str, slot_key: str
    ) -> Optional[Dict]:
        """Update status and slot key together, DuplicateKeyError if the slot is held"""
        await self.ensure_connected()

        try:
            await self.db.appointments.update_one(
                {"_id": appointment_id},
                {"$set": {"status": status, "slot_key": slot_key, "updated_at": datetime.utcnow()}},
            )
            return await self.db.appointments.find_one({"_id": appointment_id})

        except Exception as e:
            logger.error(f"[Database] Update appointment status error: {e}")
            raise

    # Message operations
    async def create_message(self, message_data: Dict) -> ObjectId:
        await self.ensure_connected()

        try:
            result = await self.db.messages.insert_one(message_data)
            return result.inserted_id

        except Exception as e:
            logger.error(f"[Database] Create message error: {e}")
            raise

    async def get_thread(self, user_id: str, other_user_id: str) -> List[Dict]:
        """All messages between two users, oldest first"""
        await self.ensure_connected()

        try:
            cursor = self.db.messages.find(_pair_query(user_id, other_user_id)).sort(
                [("created_at", 1), ("_id", 1)]
            )
            return await cursor.to_list(length=None)

        except Exception as e:
            logger.error(f"[Database] Get thread error: {e}")
            raise

    async def get_last_message(self, user_id: str, other_user_id: str) -> Optional[Dict]:
        await self.ensure_connected()

        try:
            cursor = (
                self.db.messages.find(_pair_query(user_id, other_user_id))
                .sort([("created_at", -1), ("_id", -1)])
                .limit(1)
            )
            messages = await cursor.to_list(length=1)
            return messages[0] if messages else None

        except Exception as e:
            logger.error(f"[Database] Get last message error: {e}")
            raise

    async def get_counterpart_ids(self, user_id: str) -> List[str]:
        """Users this user has sent messages to or received messages from"""
        await self.ensure_connected()

        try:
            sent_to = await self.db.messages.distinct("receiver_id", {"sender_id": user_id})
            received_from = await self.db.messages.distinct("sender_id", {"receiver_id": user_id})

            counterparts = []
            for other_id in sent_to + received_from:
                if other_id not in counterparts:
                    counterparts.append(other_id)
            return counterparts

        except Exception as e:
            logger.error(f"[Database] Get counterparts error: {e}")
            raise

    async def count_unread(self, receiver_id: str, sender_id: Optional[str] = None) -> int:
        await self.ensure_connected()

        query = {"receiver_id": receiver_id, "is_read": False}
        if sender_id:
            query["sender_id"] = sender_id

        try:
            return await self.db.messages.count_documents(query)

        except Exception as e:
            logger.error(f"[Database] Count unread error: {e}")
            raise

    async def mark_messages_read(self, sender_id: str, receiver_id: str) -> int:
        await self.ensure_connected()

        try:
            result = await self.db.messages.update_many(
                {"sender_id": sender_id, "receiver_id": receiver_id, "is_read": False},
                {"$set": {"is_read": True}},
            )
            return result.modified_count

        except Exception as e:
            logger.error(f"[Database] Mark messages read error: {e}")
            raise

    async def close(self):
        """Close database connection"""
        if self.client:
            self.client.close()
            self.connected = False
            logger.info("[Database] Connection closed")


def _pair_query(user_id: str, other_user_id: str) -> Dict[str, Any]:
    return {
        "$or": [
            {"sender_id": user_id, "receiver_id": other_user_id},
            {"sender_id": other_user_id, "receiver_id": user_id},
        ]
    }
