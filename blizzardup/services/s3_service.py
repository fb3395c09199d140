from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import aioboto3
from botocore.exceptions import ClientError

from blizzardup.services.config import AwsConfig
from blizzardup.services.errors import ProvisionError


logger = logging.getLogger(__name__)


class S3ServiceError(ProvisionError):
    pass


class S3Service:
    def __init__(self, config: AwsConfig) -> None:
        self._config = config
        self._session = aioboto3.Session()

    def _client(self) -> Any:
        return self._session.client(
            "s3",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    async def create_bucket(self, name: str) -> str:
        """Create a private bucket in the configured region.

        A bucket we already own counts as created, so the call is safe to repeat.

        Returns:
            The bucket ARN.
        """

        if not name:
            raise ValueError("'name' must be provided")

        kwargs: dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit LocationConstraint
        if self._config.region_name != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._config.region_name}

        try:
            s3_client: Any = self._client()
            async with s3_client as s3:
                try:
                    await s3.create_bucket(**kwargs)
                    logger.info("created S3 bucket %s", name)
                except ClientError as exc:
                    code = exc.response.get("Error", {}).get("Code")
                    if code != "BucketAlreadyOwnedByYou":
                        raise
                    logger.info("S3 bucket %s already exists and is owned by you", name)

                await s3.put_public_access_block(
                    Bucket=name,
                    PublicAccessBlockConfiguration={
                        "BlockPublicAcls": True,
                        "IgnorePublicAcls": True,
                        "BlockPublicPolicy": True,
                        "RestrictPublicBuckets": True,
                    },
                )
        except Exception as exc:
            logger.exception("S3 create_bucket failed")
            raise S3ServiceError(f"Failed to create S3 bucket (bucket={name})") from exc

        return f"arn:aws:s3:::{name}"

    async def put_object(self, *, path: Path, bucket: str, key: str, content_type: Optional[str] = None) -> str:
        """Upload a local file to S3, overwriting any existing object.

        Args:
            path: Local file path.
            bucket: Destination bucket.
            key: Destination S3 object key.
            content_type: Stored as the object ContentType when given.

        Returns:
            The uploaded object key.
        """

        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if content_type:
            kwargs["ContentType"] = content_type

        try:
            kwargs["Body"] = path.read_bytes()
            s3_client: Any = self._client()
            async with s3_client as s3:
                await s3.put_object(**kwargs)
        except Exception as exc:
            logger.exception("S3 put_object failed")
            raise S3ServiceError(f"Failed to upload {path} to S3 (bucket={bucket}, key={key})") from exc

        logger.info("uploaded %s to s3://%s/%s", path, bucket, key)
        return key
