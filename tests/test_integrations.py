import io
import json
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import boto3
import httpx
import pytest
from botocore.stub import Stubber

from viewtuber.errors import EmailDeliveryError, ExternalProviderError, PlatformPublishError, StorageProviderError
from viewtuber.integrations.email import Mailer, render_invite
from viewtuber.integrations.storage import S3Storage
from viewtuber.integrations.youtube import YouTubeClient, build_video_resource


# ---------- S3 ----------
def _s3_storage():
    client = boto3.client(
        "s3", region_name="ap-south-1",
        aws_access_key_id="AKIATESTTESTTEST", aws_secret_access_key="test-secret",
    )
    return S3Storage("viewtuber-videos", "ap-south-1", client=client)


@pytest.fixture
def s3():
    storage = _s3_storage()
    client = storage.client
    with Stubber(client) as stubber:
        yield storage, stubber


def test_s3_initiate_returns_upload_id(s3):
    storage, stubber = s3
    stubber.add_response(
        "create_multipart_upload",
        {"UploadId": "up-1", "Bucket": "viewtuber-videos", "Key": "k.mp4"},
        {"Bucket": "viewtuber-videos", "Key": "k.mp4", "ContentType": "video/mp4"},
    )
    assert storage.initiate_multipart_upload("k.mp4", "video/mp4") == "up-1"
    stubber.assert_no_pending_responses()


def test_s3_complete_sends_parts(s3):
    storage, stubber = s3
    parts = [{"PartNumber": 1, "ETag": '"a"'}, {"PartNumber": 2, "ETag": '"b"'}]
    stubber.add_response(
        "complete_multipart_upload",
        {"Bucket": "viewtuber-videos", "Key": "k.mp4"},
        {"Bucket": "viewtuber-videos", "Key": "k.mp4", "UploadId": "up-1", "MultipartUpload": {"Parts": parts}},
    )
    storage.complete_multipart_upload("k.mp4", "up-1", parts)
    stubber.assert_no_pending_responses()


def test_s3_errors_are_wrapped(s3):
    storage, stubber = s3
    stubber.add_client_error("complete_multipart_upload", service_error_code="NoSuchUpload", http_status_code=404)
    stubber.add_client_error("abort_multipart_upload", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageProviderError):
        storage.complete_multipart_upload("k.mp4", "up-x", [{"PartNumber": 1, "ETag": '"a"'}])
    with pytest.raises(StorageProviderError):
        storage.abort_multipart_upload("k.mp4", "up-x")


def test_s3_presigned_part_url():
    storage = _s3_storage()
    url = storage.presign_upload_part("k.mp4", "up-1", 3, ttl=900)
    q = parse_qs(urlparse(url).query)
    assert q["partNumber"] == ["3"]
    assert q["uploadId"] == ["up-1"]
    assert "viewtuber-videos" in url


def test_s3_object_url():
    storage = _s3_storage()
    assert storage.object_url("u_1/projects/a-1") == "https://viewtuber-videos.s3.ap-south-1.amazonaws.com/u_1/projects/a-1"


# ---------- Email ----------
def test_mailer_posts_to_resend():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "em_1"})

    mailer = Mailer("re_key", "Viewtuber <noreply@viewtuber.test>", api_url="https://mail.test/emails",
                    transport=httpx.MockTransport(handler))
    assert mailer.send_project_invite("e@example.com", "https://app.test/project/p_1?invitecode=c", "Demo", "editor") == "em_1"
    assert seen["auth"] == "Bearer re_key"
    assert seen["body"]["to"] == ["e@example.com"]
    assert seen["body"]["subject"] == "Project Invitation"
    assert "invitecode=c" in seen["body"]["html"]


def test_mailer_failure_raises():
    mailer = Mailer("re_key", "x@viewtuber.test",
                    transport=httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"})))
    with pytest.raises(EmailDeliveryError):
        mailer.send_editor_submission("owner@example.com", "Demo", "Eddie")


def test_mailer_non_json_success_still_counts_as_sent():
    mailer = Mailer("re_key", "x@viewtuber.test",
                    transport=httpx.MockTransport(lambda request: httpx.Response(200, text="OK")))
    assert mailer.send_project_invite("e@example.com", "https://app.test/p", "Demo", "editor") == ""


def test_invite_template_escapes_project_name():
    body = render_invite("https://app.test/?a=1&b=2", "<script>", "editor")
    assert "<script>" not in body
    assert "a=1&amp;b=2" in body


# ---------- YouTube ----------
def test_build_video_resource():
    res = build_video_resource({
        "title": "T", "description": None, "tags": ["a"], "category": "22",
        "privacy_status": "unlisted", "publish_at": datetime(2026, 11, 1, 9, 30),
    })
    assert res["snippet"] == {"title": "T", "description": "", "tags": ["a"], "categoryId": "22"}
    assert res["status"]["privacyStatus"] == "unlisted"
    assert res["status"]["publishAt"] == "2026-11-01T09:30:00Z"
    assert res["status"]["selfDeclaredMadeForKids"] is False


def test_youtube_resumable_upload():
    requests = []

    def handler(request):
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(200, headers={"Location": "https://upload.test/session/1"})
        return httpx.Response(200, json={"id": "yt_1", "snippet": {"channelId": "UC_1"}})

    yt = YouTubeClient(upload_url="https://upload.test/videos", transport=httpx.MockTransport(handler))
    out = yt.insert_video("ya29.t", {"snippet": {"title": "T"}}, io.BytesIO(b"abc"), content_type="video/mp4")

    assert out == {"platform_video_id": "yt_1", "channel_id": "UC_1"}
    init, put = requests
    assert init.url.params["uploadType"] == "resumable"
    assert init.headers["Authorization"] == "Bearer ya29.t"
    assert json.loads(init.content) == {"snippet": {"title": "T"}}
    assert str(put.url) == "https://upload.test/session/1"
    assert put.content == b"abc"


def test_youtube_upload_rejected():
    transport = httpx.MockTransport(lambda request: httpx.Response(403, json={"error": {"message": "quotaExceeded"}}))
    yt = YouTubeClient(upload_url="https://upload.test/videos", transport=transport)
    with pytest.raises(PlatformPublishError):
        yt.insert_video("ya29.t", {}, io.BytesIO(b"abc"))


def test_youtube_channel_lookup():
    def handler(request):
        assert request.url.params["mine"] == "true"
        return httpx.Response(200, json={"items": [{"id": "UC_1"}]})

    yt = YouTubeClient(api_url="https://api.test/youtube/v3", transport=httpx.MockTransport(handler))
    assert yt.get_channel("ya29.t") == {"id": "UC_1"}

    empty = YouTubeClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"items": []})))
    assert empty.get_channel("ya29.t") is None

    denied = YouTubeClient(transport=httpx.MockTransport(lambda request: httpx.Response(401)))
    with pytest.raises(ExternalProviderError):
        denied.get_channel("ya29.t")


def test_channel_route(client, auth_header, fakes):
    r = client.get("/youtube/channel", headers=auth_header)
    assert r.status_code == 200
    assert r.json()["channel"]["id"] == "UC_owner"
    assert fakes["youtube"].calls == [{"token": "ya29.owner"}]


def test_channel_route_without_platform_access(client, editor_header):
    r = client.get("/youtube/channel", headers=editor_header)
    assert r.status_code == 403
