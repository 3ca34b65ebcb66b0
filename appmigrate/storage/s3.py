#!/usr/bin/env python3
"""S3 storage backend for production mode."""

import os
from pathlib import Path

from .base import StorageBackend
from ..errors import ConfigurationError, StorageError


class S3Storage(StorageBackend):
    """S3 storage backend for production mode."""

    def __init__(self, config):
        self.bucket = config.get('bucket_name')
        self.region = config.get('region', 'us-east-1')
        self.endpoint_url = config.get('endpoint_url')
        self.prefix = config.get('prefix', 'exports/')

        if not self.bucket:
            raise ConfigurationError("Missing s3.bucket_name in config")
        self._validate_credentials()
        self._client = None

    def _validate_credentials(self):
        """Validate required AWS credentials are set."""
        missing = []
        if 'AWS_ACCESS_KEY_ID' not in os.environ:
            missing.append('AWS_ACCESS_KEY_ID')
        if 'AWS_SECRET_ACCESS_KEY' not in os.environ:
            missing.append('AWS_SECRET_ACCESS_KEY')

        if missing:
            raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")

    def _get_client(self):
        """Lazy initialization of boto3 client."""
        if self._client is None:
            import boto3
            self._client = boto3.client(
                's3',
                endpoint_url=self.endpoint_url,
                aws_access_key_id=os.environ['AWS_ACCESS_KEY_ID'],
                aws_secret_access_key=os.environ['AWS_SECRET_ACCESS_KEY'],
                region_name=self.region
            )
        return self._client

    def _key(self, storage_key):
        return f"{self.prefix.rstrip('/')}/{storage_key}" if self.prefix else storage_key

    def _get_s3_url(self, key):
        return f"s3://{self.bucket}/{key}"

    def upload_file(self, local_path, storage_key):
        key = self._key(storage_key)
        s3_url = self._get_s3_url(key)
        print(f"Uploading to S3: {s3_url}")
        try:
            self._get_client().upload_file(str(local_path), self.bucket, key)
        except Exception as e:
            raise StorageError(f"S3 upload failed: {e}") from e
        print("[OK] Uploaded")
        return s3_url

    def download_file(self, storage_key, local_path):
        key = self._key(storage_key)
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        print(f"Downloading from S3: {self._get_s3_url(key)}")
        try:
            self._get_client().download_file(self.bucket, key, str(local_path))
        except Exception as e:
            raise StorageError(f"S3 download failed: {e}") from e
        print("[OK] Downloaded")
        return str(local_path)

    def get_metadata(self, storage_key):
        from botocore.exceptions import ClientError

        key = self._key(storage_key)
        try:
            response = self._get_client().head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey'):
                return {'exists': False}
            raise StorageError(f"S3 head_object failed: {e}") from e

        return {
            'storage_mode': 's3',
            's3_bucket': self.bucket,
            's3_key': key,
            'exists': True,
            'size': response.get('ContentLength'),
            'last_modified': response.get('LastModified')
        }
