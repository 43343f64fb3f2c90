import io
import os
import pytest
import mongomock
from fastapi.testclient import TestClient
from datetime import datetime, timedelta
import jwt as pyjwt

# === Configure env BEFORE any imports ===
os.environ["TESTING"] = "1"
os.environ.setdefault("MONGO_DB", "viewtuber_test")
os.environ.setdefault("JWT_SECRET", "dev-secret")
os.environ.setdefault("BASE_URL", "https://viewtuber.test")

from viewtuber.errors import EmailDeliveryError, PlatformPublishError, StorageProviderError


# === Provider test doubles ===
class FakeStorage:
    def __init__(self):
        self.uploads = {}
        self.completed = {}
        self.aborted = set()
        self.objects = {}
        self.presign_calls = []
        self.fail_initiate = False
        self.fail_complete = False

    def initiate_multipart_upload(self, key, content_type):
        if self.fail_initiate:
            raise StorageProviderError("Error initiating upload")
        upload_id = f"up_{len(self.uploads) + 1}"
        self.uploads[upload_id] = {"key": key, "content_type": content_type}
        return upload_id

    def presign_upload_part(self, key, upload_id, part_number, ttl):
        self.presign_calls.append(part_number)
        return f"https://s3.test/{key}?uploadId={upload_id}&partNumber={part_number}&X-Amz-Expires={ttl}"

    def complete_multipart_upload(self, key, upload_id, parts):
        if self.fail_complete or upload_id not in self.uploads or upload_id in self.aborted:
            raise StorageProviderError("NoSuchUpload")
        self.completed[upload_id] = parts
        self.objects[key] = b"\x00\x00\x00\x18ftypmp42"

    def abort_multipart_upload(self, key, upload_id):
        self.aborted.add(upload_id)

    def open_object(self, key):
        return io.BytesIO(self.objects.get(key, b"video-bytes"))

    def object_url(self, key):
        return f"https://bucket.s3.test/{key}"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_project_invite(self, to, invite_url, project_name, role):
        if self.fail:
            raise EmailDeliveryError()
        self.sent.append({"kind": "invite", "to": to, "url": invite_url, "project": project_name, "role": role})
        return "msg_1"

    def send_editor_submission(self, to, project_name, editor_name):
        if self.fail:
            raise EmailDeliveryError()
        self.sent.append({"kind": "submission", "to": to, "project": project_name, "editor": editor_name})
        return "msg_2"


class FakeYouTube:
    def __init__(self):
        self.calls = []
        self.fail = False

    def insert_video(self, access_token, metadata, media, content_type="video/*"):
        self.calls.append({"token": access_token, "metadata": metadata, "bytes": media.read()})
        if self.fail:
            raise PlatformPublishError("quotaExceeded")
        return {"platform_video_id": "yt_abc123", "channel_id": "UC_owner"}

    def get_channel(self, access_token):
        self.calls.append({"token": access_token})
        return {"id": "UC_owner", "snippet": {"title": "Owner Channel"}}


class FakeRefresher:
    def __init__(self):
        self.calls = []

    def refresh(self, refresh_token):
        self.calls.append(refresh_token)
        return {"access_token": "ya29.fresh", "expires_in": 3600}


class Clock:
    """Mutable clock for expiry tests."""
    def __init__(self, now=None):
        self.now = now or datetime(2026, 10, 19, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kw):
        self.now = self.now + timedelta(**kw)


@pytest.fixture(scope="session")
def app_instance():
    """Import app after environment is configured."""
    from viewtuber.main import app
    return app


@pytest.fixture
def fakes():
    return {
        "storage": FakeStorage(),
        "mailer": FakeMailer(),
        "youtube": FakeYouTube(),
        "refresher": FakeRefresher(),
    }


@pytest.fixture(autouse=True)
def patch_db_and_clients(monkeypatch, fakes):
    """Patch all external dependencies with test doubles."""

    # 1) Ensure MongoDB uses mongomock
    import viewtuber.db.mongo as mongo_mod

    # Reset the module's global state for each test
    mongo_mod._client = None
    mongo_mod._db = None
    mongo_mod._indexes_created = False

    mock_client = mongomock.MongoClient()
    mock_db = mock_client[os.getenv("MONGO_DB", "viewtuber_test")]

    monkeypatch.setattr(mongo_mod, "get_client", lambda: mock_client)
    monkeypatch.setattr(mongo_mod, "get_db", lambda: mock_db)

    mongo_mod.ensure_indexes()

    # 2) Providers
    import viewtuber.deps as deps
    monkeypatch.setattr(deps, "get_storage", lambda: fakes["storage"])
    monkeypatch.setattr(deps, "get_mailer", lambda: fakes["mailer"])
    monkeypatch.setattr(deps, "get_youtube", lambda: fakes["youtube"])
    monkeypatch.setattr(deps, "get_token_refresher", lambda: fakes["refresher"])

    yield


@pytest.fixture
def mdb():
    from viewtuber.db.mongo import get_db
    return get_db()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def client(app_instance):
    """Test client for making HTTP requests."""
    return TestClient(app_instance)


# === Users & auth helpers ===
def _token_for(sub, email):
    return pyjwt.encode({"sub": sub, "email": email}, os.getenv("JWT_SECRET", "dev-secret"), algorithm="HS256")


@pytest.fixture
def users(mdb):
    now = datetime.utcnow()
    mdb.users.insert_many([
        {"_id": "u_owner", "email": "owner@example.com", "name": "Owner",
         "access_token": "ya29.owner", "refresh_token": "1//owner",
         "expires_at": now + timedelta(hours=1), "created_at": now},
        {"_id": "u_editor", "email": "editor@example.com", "name": "Eddie",
         "access_token": None, "refresh_token": None, "expires_at": None, "created_at": now},
        {"_id": "u_other", "email": "other@example.com", "name": "Other", "created_at": now},
    ])
    return {"owner": "u_owner", "editor": "u_editor", "other": "u_other"}


@pytest.fixture
def auth_header(users):
    return {"Authorization": f"Bearer {_token_for('u_owner', 'owner@example.com')}"}


@pytest.fixture
def editor_header(users):
    return {"Authorization": f"Bearer {_token_for('u_editor', 'editor@example.com')}"}


@pytest.fixture
def other_header(users):
    return {"Authorization": f"Bearer {_token_for('u_other', 'other@example.com')}"}


# === Seeded aggregate ===
@pytest.fixture
def seeded_project(mdb, users):
    """Project p_demo owned by u_owner, with one completed raw video v_raw."""
    now = datetime.utcnow()
    mdb.projects.insert_one({
        "_id": "p_demo", "name": "Demo", "description": None, "requirements": None,
        "deadline": None, "owner_id": "u_owner", "key": "u_owner/projects/Demo-1",
        "edited_video_id": None, "created_at": now, "updated_at": now,
    })
    mdb.members.insert_one({
        "_id": "m_owner", "project_id": "p_demo", "user_id": "u_owner", "email": "owner@example.com",
        "role": "youtuber", "status": "accepted", "invite_code": None, "invite_code_expiry": None,
        "permissions": ["all"], "created_at": now,
    })
    mdb.videos.insert_one({
        "_id": "v_raw", "project_id": "p_demo", "kind": "raw", "title": "Demo", "description": None,
        "tags": [], "category": None, "privacy_status": "private",
        "url": "https://bucket.s3.test/u_owner/projects/Demo-1", "filename": "u_owner/projects/Demo-1",
        "is_approved": False, "failure_reason": None, "upload_status": "completed",
        "publish_at": None, "channel_id": None, "created_at": now, "updated_at": now,
    })
    return "p_demo"


@pytest.fixture
def add_editor(mdb):
    def _add(permissions, project_id="p_demo", user_id="u_editor", email="editor@example.com"):
        mdb.members.insert_one({
            "_id": f"m_{user_id}", "project_id": project_id, "user_id": user_id, "email": email,
            "role": "editor", "status": "accepted", "invite_code": "x", "invite_code_expiry": None,
            "permissions": permissions, "created_at": datetime.utcnow(),
        })
    return _add
