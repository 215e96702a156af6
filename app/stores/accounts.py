"""
accounts.py — Account persistence over the `users` collection.

The unique indexes on username and email are what actually enforce
handle / contact uniqueness when two registrations race; the service's
pre-check only produces the friendlier error in the common case.
"""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from app.core.database import USERS
from app.core.errors import Conflict
from app.models.account import Account

logger = logging.getLogger(__name__)


class AccountStore:
    def __init__(self, db) -> None:
        self._users = db[USERS]

    async def ensure_indexes(self) -> None:
        await self._users.create_index("username", unique=True)
        await self._users.create_index("email", unique=True)

    async def find_conflicting(self, username: str, email: str) -> Optional[Account]:
        """Any account already holding *username* or *email*."""
        doc = await self._users.find_one({"$or": [{"username": username}, {"email": email}]})
        return Account.from_doc(doc) if doc else None

    async def find_by_login(self, handle_or_contact: str) -> Optional[Account]:
        """Login accepts either the username or the email address."""
        doc = await self._users.find_one(
            {"$or": [{"username": handle_or_contact}, {"email": handle_or_contact}]}
        )
        return Account.from_doc(doc) if doc else None

    async def get(self, account_id: str) -> Optional[Account]:
        try:
            oid = ObjectId(account_id)
        except (InvalidId, TypeError):
            return None
        doc = await self._users.find_one({"_id": oid})
        return Account.from_doc(doc) if doc else None

    async def insert(self, username: str, email: str, hashed_password: str, created_at: datetime) -> Account:
        doc = {
            "username": username,
            "email": email,
            "hashed_password": hashed_password,
            "created_at": created_at,
            "last_login_at": None,
        }
        try:
            result = await self._users.insert_one(doc)
        except DuplicateKeyError as exc:
            logger.info("Registration lost uniqueness race for username=%s", username)
            raise Conflict() from exc
        doc["_id"] = result.inserted_id
        return Account.from_doc(doc)

    async def touch_last_login(self, account_id: str, when: datetime) -> None:
        await self._users.update_one(
            {"_id": ObjectId(account_id)},
            {"$set": {"last_login_at": when}},
        )

    async def set_password_hash(self, account_id: str, hashed_password: str) -> None:
        await self._users.update_one(
            {"_id": ObjectId(account_id)},
            {"$set": {"hashed_password": hashed_password}},
        )
