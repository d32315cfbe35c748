import base64
import binascii
import logging
import os
import pathlib
import uuid
from typing import Optional

from google.cloud import storage

from fleet.core.config import settings

logger = logging.getLogger("fleet.storage")

ALLOWED_EXTENSIONS = {"pdf", "png", "jpg", "jpeg", "webp"}
CONTENT_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


class StorageError(Exception):
    pass


class StorageClient:
    def __init__(self) -> None:
        self.bucket_name = os.getenv("GCS_BUCKET")
        self.use_local = os.getenv("LOCAL_STORAGE", "0") == "1" or not self.bucket_name
        self.base_dir = pathlib.Path(os.getenv("LOCAL_STORAGE_DIR", "storage")).resolve()
        if self.use_local:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        self._client = storage.Client() if self.bucket_name and not self.use_local else None

    def _ensure_bucket(self):
        if not self.bucket_name or not self._client:
            raise StorageError("GCS_BUCKET nao configurado.")
        return self._client.bucket(self.bucket_name)

    def upload_bytes(self, content: bytes, dest_path: str, content_type: str) -> str:
        if self.use_local:
            full_path = self.base_dir / dest_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(content)
            return full_path.as_uri()
        bucket = self._ensure_bucket()
        blob = bucket.blob(dest_path)
        blob.upload_from_string(content, content_type=content_type)
        return f"gs://{self.bucket_name}/{dest_path}"

    def delete(self, file_url: str) -> None:
        if file_url.startswith("file://"):
            path = pathlib.Path(file_url.replace("file://", "", 1))
            path.unlink(missing_ok=True)
            return
        if file_url.startswith("gs://"):
            _, path = file_url.split("gs://", 1)
            bucket_name, blob_path = path.split("/", 1)
            client = self._client or storage.Client()
            client.bucket(bucket_name).blob(blob_path).delete()
            return
        raise StorageError("URL de arquivo nao suportada.")


def decode_document(payload: dict) -> tuple[bytes, str]:
    extension = str(payload.get("extension") or "").lower().lstrip(".")
    if extension not in ALLOWED_EXTENSIONS:
        raise StorageError("Tipo de arquivo invalido")
    raw = str(payload.get("base64") or "")
    if "," in raw and raw.startswith("data:"):
        raw = raw.split(",", 1)[1]
    try:
        content = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise StorageError("Arquivo em base64 invalido")
    if not content:
        raise StorageError("Arquivo vazio")
    if len(content) > settings.MAX_DOCUMENT_BYTES:
        raise StorageError("Arquivo excede o tamanho maximo permitido.")
    return content, extension


class PendingAttachments:
    """
    Uploads documents ahead of a commit and deletes them when the commit
    does not happen.

        with PendingAttachments(client, "vehicles/123/sale") as pending:
            url = pending.attach("transfer_document", payload)
            ...commit referencing url...
            pending.keep()
    """

    def __init__(self, client: StorageClient, prefix: str) -> None:
        self.client = client
        self.prefix = prefix
        self.uploaded: list[str] = []
        self._kept = False

    def attach(self, kind: str, payload: Optional[dict]) -> Optional[str]:
        if not payload:
            return None
        content, extension = decode_document(payload)
        dest_path = f"{self.prefix}/{kind}/{uuid.uuid4().hex}.{extension}"
        url = self.client.upload_bytes(content, dest_path, CONTENT_TYPES[extension])
        self.uploaded.append(url)
        return url

    def keep(self) -> None:
        self._kept = True

    def discard(self) -> None:
        for url in self.uploaded:
            try:
                self.client.delete(url)
            except Exception:
                logger.exception("Falha ao remover anexo orfao url=%s", url)
        self.uploaded = []

    def __enter__(self) -> "PendingAttachments":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._kept:
            self.discard()
