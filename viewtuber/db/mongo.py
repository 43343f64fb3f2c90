# viewtuber/db/mongo.py
import os
from pymongo import MongoClient, ASCENDING

from viewtuber.config import settings


# Lazy initialization - don't connect at import time
_client = None
_db = None
_indexes_created = False

def get_client():
    """Get or create the MongoDB client."""
    global _client
    if _client is None:
        if os.getenv("TESTING") == "1":
            import mongomock
            _client = mongomock.MongoClient()
        else:
            _client = MongoClient(settings.mongo_uri)
    return _client

def get_db():
    """Get or create the MongoDB database."""
    global _db
    if _db is None:
        _db = get_client()[settings.mongo_db]
    return _db

# Module attribute that always resolves through get_db(), so tests can swap it
class _LazyDB:
    def __getattr__(self, name):
        return getattr(get_db(), name)

db = _LazyDB()

def ensure_indexes():
    """Create all necessary indexes. Safe to call multiple times."""
    global _indexes_created
    if _indexes_created:
        return

    _db = get_db()

    _db.users.create_index([("email", ASCENDING)], unique=True, name="users_by_email")

    # Project names are unique per owner
    _db.projects.create_index(
        [("owner_id", ASCENDING), ("name", ASCENDING)],
        unique=True,
        name="projects_by_owner_name",
    )

    # Invitation redemption filter
    _db.members.create_index(
        [
            ("project_id", ASCENDING),
            ("email", ASCENDING),
            ("status", ASCENDING),
            ("invite_code", ASCENDING),
            ("invite_code_expiry", ASCENDING),
        ],
        name="members_invite_lookup",
    )
    # Membership checks per request
    _db.members.create_index(
        [("project_id", ASCENDING), ("user_id", ASCENDING), ("status", ASCENDING)],
        name="members_by_project_user",
    )
    _db.members.create_index([("user_id", ASCENDING), ("status", ASCENDING)], name="members_by_user")

    _db.videos.create_index([("project_id", ASCENDING)], name="videos_by_project")

    _indexes_created = True
