"""
Object storage for product photos, logos and banners.

S3-compatible (MinIO locally, AWS S3 or Spaces in production) through
boto3; objects are public-read so the storefront can link them directly.
"""
import json
import logging
import mimetypes
import uuid
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


class StorageService:
    """
    S3-compatible object storage service.
    
    Usage:
        storage = get_storage_service()
        url = storage.upload_file(file, storage.build_object_name('products', file.filename))
    """
    
    def __init__(self):
        """Initialize S3 client from Flask config."""
        self.endpoint = current_app.config['S3_ENDPOINT']
        self.bucket = current_app.config['S3_BUCKET']
        self.public_url = current_app.config['S3_PUBLIC_URL']
        
        self.client = boto3.client(
            's3',
            endpoint_url=self.endpoint,
            aws_access_key_id=current_app.config['S3_ACCESS_KEY'],
            aws_secret_access_key=current_app.config['S3_SECRET_KEY'],
            region_name=current_app.config['S3_REGION'],
            config=BotoConfig(signature_version='s3v4', connect_timeout=5, read_timeout=30)
        )
        
        self._ensure_bucket_exists()
    
    def _ensure_bucket_exists(self):
        """Create the bucket with a public-read policy if missing."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code != '404':
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise
            
            self.client.create_bucket(Bucket=self.bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{self.bucket}/*"
                    }
                ]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] Bucket '{self.bucket}' created with public-read policy")
    
    @staticmethod
    def build_object_name(folder: str, filename: str) -> str:
        """Unique key under a folder, keeping the original extension."""
        safe_name = secure_filename(filename or '') or 'upload'
        extension = safe_name.rsplit('.', 1)[-1].lower() if '.' in safe_name else 'bin'
        return f"{folder}/{uuid.uuid4().hex}.{extension}"
    
    def upload_file(self, file: FileStorage, object_name: str, content_type: Optional[str] = None) -> str:
        """
        Upload a request file.
        
        Returns:
            Public URL of the uploaded object
        
        Raises:
            ValueError: If file validation fails
            ClientError: If upload fails
        """
        self._validate_file(file)
        
        if not content_type:
            content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'
        
        try:
            file.seek(0)
            self.client.upload_fileobj(
                file.stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
            url = self.get_public_url(object_name)
            logger.info(f"[STORAGE] File uploaded: {url}")
            return url
        except ClientError as e:
            logger.exception(f"[STORAGE] Upload failed: {e}")
            raise
    
    def delete_file(self, object_name: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] File deleted: {object_name}")
            return True
        except ClientError as e:
            logger.exception(f"[STORAGE] Delete failed: {e}")
            return False
    
    def get_public_url(self, object_name: str) -> str:
        return f"{self.public_url}/{self.bucket}/{object_name}"
    
    def object_name_from_url(self, url: str) -> Optional[str]:
        """Inverse of get_public_url for objects of this bucket."""
        prefix = f"{self.public_url}/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None
    
    def _validate_file(self, file: FileStorage):
        """
        Validate size and MIME type.
        
        Raises:
            ValueError: If validation fails
        """
        if not file or not file.filename:
            raise ValueError("Nenhum arquivo enviado")
        
        max_size = current_app.config.get('MAX_UPLOAD_SIZE', 5 * 1024 * 1024)
        file.seek(0, 2)
        file_size = file.tell()
        file.seek(0)
        
        if file_size > max_size:
            max_mb = max_size / (1024 * 1024)
            raise ValueError(f"Arquivo muito grande. Máximo {max_mb:.1f}MB")
        
        allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())
        if allowed_types and file.content_type not in allowed_types:
            raise ValueError(f"Tipo de arquivo não permitido: {file.content_type}")


_storage_service = None


def get_storage_service() -> StorageService:
    """Get or create StorageService singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
