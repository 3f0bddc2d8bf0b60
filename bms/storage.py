import logging
import mimetypes
import os
import uuid
from typing import Optional, Tuple

from bms.core.settings import Settings

logger = logging.getLogger("bms.storage")


def _safe_filename(name: str) -> str:
    keep = "".join(c for c in (name or "") if c.isalnum() or c in (" ", ".", "_", "-", "(", ")"))
    return keep.strip() or str(uuid.uuid4())


class DocumentStorage:
    """Tender attachments on an S3-compatible bucket, or on local disk when no bucket is set.

    Local files are served by the static mount at ``/uploads``.
    """

    def __init__(self, settings: Settings):
        self.bucket = settings.DOCS_BUCKET or ""
        self.local_dir = settings.LOCAL_UPLOAD_DIR or "uploads"
        self.use_s3 = bool(self.bucket)
        self._s3 = self._build_s3_client(settings) if self.use_s3 else None

    @staticmethod
    def _build_s3_client(settings: Settings):
        import boto3
        from botocore.config import Config

        return boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION or "us-east-1",  # R2 accepts 'auto' or a region
            endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. https://<accountid>.r2.cloudflarestorage.com
            config=Config(signature_version="s3v4", s3={"addressing_style": settings.S3_ADDRESSING_STYLE or "virtual"}),
        )

    def store_bytes(self, tender_id: str, data: bytes, original_name: str, content_type: Optional[str]) -> Tuple[str, str, int, str]:
        """
        Returns: (storage_key, filename, size, mime)
        storage_key is an S3 key OR a path relative to the local upload dir.
        """
        fname = _safe_filename(original_name)
        mime = content_type or mimetypes.guess_type(fname)[0] or "application/octet-stream"
        size = len(data)
        key = f"tenders/{tender_id}/{uuid.uuid4()}_{fname}"

        if self.use_s3:
            self._s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=mime)
        else:
            path = self._local_path(key)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        return key, fname, size, mime

    def download_url(self, storage_key: str, expires: int = 900) -> str:
        if self.use_s3:
            return self._s3.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": storage_key},
                ExpiresIn=expires,
            )
        return f"/uploads/{storage_key}"

    def delete(self, storage_key: str) -> None:
        if self.use_s3:
            self._s3.delete_object(Bucket=self.bucket, Key=storage_key)
            return
        path = self._local_path(storage_key)
        if os.path.exists(path):
            os.remove(path)

    def discard(self, storage_keys) -> None:
        """Best-effort delete after the owning rows are committed; failures are logged."""
        errors: tuple = (OSError, ValueError)
        if self.use_s3:
            from botocore.exceptions import BotoCoreError, ClientError

            errors += (BotoCoreError, ClientError)
        for key in storage_keys:
            try:
                self.delete(key)
            except errors as exc:
                logger.warning("could not delete stored file %s: %s", key, exc)

    def _local_path(self, storage_key: str) -> str:
        # Guard against path traversal; force inside local_dir
        base = os.path.abspath(self.local_dir)
        path = os.path.abspath(os.path.join(base, storage_key))
        if not path.startswith(base + os.sep):
            raise ValueError(f"storage key escapes upload dir: {storage_key!r}")
        return path
