from __future__ import annotations

import logging
import re
import uuid
from typing import Protocol

from fastapi import UploadFile

from sprintr.config import settings
from sprintr.errors import BusinessRuleViolation, StorageError
from sprintr.supabase import SupabaseProject, normalize_base_url, request_json

logger = logging.getLogger(__name__)


def sanitize_file_name(name: str) -> str:
  safe = re.sub(r"\s+", "-", name or "")
  return re.sub(r"[^a-zA-Z0-9._-]", "", safe)


def image_object_path(prefix: str, filename: str | None) -> str:
  ext = "png"
  if filename and "." in filename:
    ext = sanitize_file_name(filename.rsplit(".", 1)[-1]) or "png"
  return f"{prefix}/{uuid.uuid4()}.{ext}"


def is_absolute_url(value: str | None) -> bool:
  return bool(value) and bool(re.match(r"^https?://", str(value), re.IGNORECASE))


class StorageClient(Protocol):
  async def upload(self, bucket: str, path: str, content: bytes, *, content_type: str | None = None, upsert: bool = True) -> str: ...

  def public_url(self, bucket: str, path: str) -> str: ...

  async def remove(self, bucket: str, paths: list[str]) -> None: ...


class SupabaseStorageClient:
  def __init__(self, project: SupabaseProject) -> None:
    self.project = project

  async def upload(self, bucket: str, path: str, content: bytes, *, content_type: str | None = None, upsert: bool = True) -> str:
    headers = {"x-upsert": "true" if upsert else "false"}
    if content_type:
      headers["Content-Type"] = content_type
    async with self.project.httpx_client(service=True) as client:
      await request_json(client, "POST", f"/storage/v1/object/{bucket}/{path}", content=content, headers=headers, error_cls=StorageError)
    return path

  def public_url(self, bucket: str, path: str) -> str:
    return f"{normalize_base_url(self.project.url)}/storage/v1/object/public/{bucket}/{path}"

  async def remove(self, bucket: str, paths: list[str]) -> None:
    keys = [p for p in paths if p and not is_absolute_url(p)]
    if not keys:
      return
    async with self.project.httpx_client(service=True) as client:
      await request_json(client, "DELETE", f"/storage/v1/object/{bucket}", json={"prefixes": keys}, error_cls=StorageError)


def image_url(storage: StorageClient, bucket: str, image_id: str | None) -> str | None:
  if not image_id:
    return None
  if is_absolute_url(image_id):
    return image_id
  return storage.public_url(bucket, image_id)


ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/svg+xml", "image/webp", "image/gif"}


async def upload_image(storage: StorageClient, upload: UploadFile, prefix: str) -> str:
  """Store an uploaded image under `{prefix}/` in the images bucket and return its object path."""
  content_type = (upload.content_type or "").lower()
  if content_type not in ALLOWED_IMAGE_TYPES:
    raise BusinessRuleViolation("Unsupported image type.")
  data = await upload.read()
  if not data or len(data) > settings.max_image_bytes:
    raise BusinessRuleViolation(f"Image must be between 1B and {settings.max_image_bytes // (1024 * 1024)}MB.")
  path = image_object_path(prefix, upload.filename)
  return await storage.upload(settings.images_bucket, path, data, content_type=content_type, upsert=True)


async def remove_images(storage: StorageClient, image_ids: list[str | None]) -> None:
  """Best-effort cleanup of stored images; failures are only logged."""
  keys = [i for i in image_ids if i and not is_absolute_url(i)]
  if not keys:
    return
  try:
    await storage.remove(settings.images_bucket, keys)
  except StorageError:
    logger.warning("image removal failed keys=%s", keys, exc_info=True)


async def resolve_image(storage: StorageClient, *, upload: UploadFile | None, url: str | None, prefix: str) -> str | None:
  """A multipart image field is either a file to store or a URL kept as-is."""
  if upload is not None and upload.filename:
    return await upload_image(storage, upload, prefix)
  url = (url or "").strip()
  if not url:
    return None
  if not is_absolute_url(url):
    raise BusinessRuleViolation("Image URL must be an http(s) URL.")
  return url
