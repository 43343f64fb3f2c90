"""
Project invitations: issue a time-limited code by email, redeem it once.

A member row moves none -> pending -> accepted. Expiry is never written as a
state; a pending row whose `invite_code_expiry` has passed is simply no
longer redeemable and no longer blocks a fresh invite.
"""
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from urllib.parse import urlencode

from pymongo import ReturnDocument

from viewtuber.core.permissions import ALL, validate_grants
from viewtuber.errors import (
    DuplicateActiveMemberError,
    InvalidOrExpiredInvitationError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ROLES = ("youtuber", "editor")


def _utcnow() -> datetime:
    return datetime.utcnow()


def _mid() -> str:
    return f"m_{uuid.uuid4().hex[:10]}"


def new_invite_code() -> str:
    # 16 random bytes -> 22 URL-safe characters
    return secrets.token_urlsafe(16)


class InvitationService:
    def __init__(self, db, mailer, base_url: str, ttl_seconds: int = 3600,
                 clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.mailer = mailer
        self.base_url = base_url.rstrip("/")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    def invite_url(self, project_id: str, invite_code: str, email: str, role: str) -> str:
        query = urlencode({"invitecode": invite_code, "email": email, "role": role})
        return f"{self.base_url}/project/{project_id}?{query}"

    def issue(self, project_id: str, inviter_id: str, email: str, role: str,
              permissions: Optional[List[str]] = None) -> dict:
        """
        Invite `email` to the project as `role`.

        The email goes out before the member row is written; if delivery
        fails nothing is persisted.
        """
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role!r}")
        if role == "editor":
            if not permissions:
                raise ValidationError("Editor permissions are required")
            grants = validate_grants(permissions)
        else:
            grants = [ALL]

        project = self.db.projects.find_one({"_id": project_id, "owner_id": inviter_id})
        if not project:
            raise NotFoundError("Project not found")

        now = self.clock()
        stale_ids = []
        for m in self.db.members.find({"project_id": project_id, "email": email}):
            if m.get("status") == "accepted":
                raise DuplicateActiveMemberError("User is already a member of the project")
            if m.get("status") == "pending":
                expiry = m.get("invite_code_expiry")
                if expiry is not None and expiry > now:
                    raise DuplicateActiveMemberError("User is already invited to the project")
                stale_ids.append(m["_id"])

        code = new_invite_code()
        expiry = now + self.ttl
        url = self.invite_url(project_id, code, email, role)

        # Raises EmailDeliveryError; no row exists yet at this point
        self.mailer.send_project_invite(email, url, project["name"], role)

        if stale_ids:
            # Expired invites are superseded by the new one
            self.db.members.delete_many({"_id": {"$in": stale_ids}, "status": "pending"})

        member = {
            "_id": _mid(),
            "project_id": project_id,
            "user_id": None,
            "email": email,
            "role": role,
            "status": "pending",
            "invite_code": code,
            "invite_code_expiry": expiry,
            "permissions": grants,
            "created_at": now,
        }
        self.db.members.insert_one(member)
        logger.info(f"Invited {email} to project {project_id} as {role} (member {member['_id']})")
        return member

    def accept(self, project_id: str, email: str, invite_code: str, user_id: str) -> dict:
        """Redeem a pending, unexpired invite and bind it to `user_id`."""
        now = self.clock()
        redeemable = {
            "project_id": project_id,
            "email": email,
            "invite_code": invite_code,
            "status": "pending",
            "invite_code_expiry": {"$gt": now},
        }
        # A spent code fails the same way for its own redeemer
        if not self.db.members.find_one(redeemable, {"_id": 1}):
            raise InvalidOrExpiredInvitationError()
        if self.db.members.find_one({"project_id": project_id, "user_id": user_id, "status": "accepted"}):
            raise DuplicateActiveMemberError("User is already a member of the project")

        # Single atomic transition: a replayed code no longer matches status=pending
        member = self.db.members.find_one_and_update(
            redeemable,
            {"$set": {"status": "accepted", "user_id": user_id, "accepted_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not member:
            raise InvalidOrExpiredInvitationError()
        logger.info(f"User {user_id} accepted invite to project {project_id} (member {member['_id']})")
        return member
