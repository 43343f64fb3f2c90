"""S3 adapter for multipart uploads of project videos."""
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from viewtuber.errors import StorageProviderError

logger = logging.getLogger(__name__)


class S3Storage:
    """
    Thin wrapper around the S3 multipart-upload API.

    Every botocore failure is re-raised as StorageProviderError; retries are
    left to the client, which can re-fetch presigned URLs at will.
    """

    def __init__(
        self,
        bucket: str,
        region: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client(
            "s3",
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region,
        )

    def initiate_multipart_upload(self, key: str, content_type: str) -> str:
        try:
            resp = self.client.create_multipart_upload(
                Bucket=self.bucket, Key=key, ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"create_multipart_upload failed for key={key}: {e}", exc_info=True)
            raise StorageProviderError("Error initiating upload") from e
        return resp["UploadId"]

    def presign_upload_part(self, key: str, upload_id: str, part_number: int, ttl: int) -> str:
        try:
            return self.client.generate_presigned_url(
                ClientMethod="upload_part",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "UploadId": upload_id,
                    "PartNumber": part_number,
                },
                ExpiresIn=ttl,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"presign upload_part failed for key={key} part={part_number}: {e}")
            raise StorageProviderError("Error generating upload URL") from e

    def complete_multipart_upload(self, key: str, upload_id: str, parts: List[Dict[str, Any]]) -> None:
        try:
            self.client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"complete_multipart_upload failed for key={key}: {e}", exc_info=True)
            raise StorageProviderError("Error completing upload") from e

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            self.client.abort_multipart_upload(Bucket=self.bucket, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"abort_multipart_upload failed for key={key}: {e}")
            raise StorageProviderError("Error aborting upload") from e

    def open_object(self, key: str):
        """Return a readable stream over the stored object."""
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"get_object failed for key={key}: {e}")
            raise StorageProviderError("Failed to get video from storage") from e
        return resp["Body"]

    def object_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
