from viewtuber.auth.credentials import CredentialCache, GoogleTokenRefresher
from viewtuber.config import settings
from viewtuber.db.mongo import db
from viewtuber.integrations.email import Mailer
from viewtuber.integrations.storage import S3Storage
from viewtuber.integrations.youtube import YouTubeClient
from viewtuber.services.invitations import InvitationService
from viewtuber.services.projects import ProjectService
from viewtuber.services.publishing import Publisher
from viewtuber.services.uploads import UploadCoordinator

# Provider singletons
_storage = None
_mailer = None
_youtube = None
_refresher = None

def get_storage() -> S3Storage:
    """Return a singleton S3 adapter."""
    global _storage
    if _storage is None:
        _storage = S3Storage(
            bucket=settings.s3_bucket_name,
            region=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )
    return _storage

def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer(settings.resend_api_key, settings.email_from, api_url=settings.resend_api_url)
    return _mailer

def get_youtube() -> YouTubeClient:
    global _youtube
    if _youtube is None:
        _youtube = YouTubeClient(api_url=settings.youtube_api_url, upload_url=settings.youtube_upload_url)
    return _youtube

def get_token_refresher() -> GoogleTokenRefresher:
    global _refresher
    if _refresher is None:
        _refresher = GoogleTokenRefresher(
            settings.google_client_id, settings.google_client_secret, token_url=settings.google_token_url
        )
    return _refresher

# Services are cheap; built per request from the providers above
def upload_coordinator() -> UploadCoordinator:
    return UploadCoordinator(db, get_storage(), presign_ttl=settings.presign_ttl_seconds,
                             max_workers=settings.presign_workers)

def project_service() -> ProjectService:
    return ProjectService(db, upload_coordinator(), mailer=get_mailer())

def invitation_service() -> InvitationService:
    return InvitationService(db, get_mailer(), base_url=settings.base_url, ttl_seconds=settings.invite_ttl_seconds)

def credential_cache() -> CredentialCache:
    return CredentialCache(db, get_token_refresher(), skew_seconds=settings.credential_refresh_skew_seconds)

def publisher() -> Publisher:
    return Publisher(db, get_storage(), get_youtube(), credential_cache())
