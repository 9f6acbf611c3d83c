"""
Media hosting.

Uploads go to Cloudinary and come back as public URLs. Admin forms send each
media field either as a URL that is already hosted or as a new file; those
two shapes are kept apart as ``ExistingUrl`` / ``PendingUpload`` until the
record is saved.
"""
import io
import logging
from typing import Literal, Optional, Protocol, Union

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)


class UploadError(Exception):
    pass


class Uploader(Protocol):
    def upload(self, data: bytes, folder: str, resource_type: str = "image") -> str:
        ...


class CloudinaryUploader:
    def __init__(self):
        # CLOUDINARY_URL, when set, is picked up by the SDK itself
        if not config.CLOUDINARY_URL and config.CLOUDINARY_CLOUD_NAME:
            cloudinary.config(
                cloud_name=config.CLOUDINARY_CLOUD_NAME,
                api_key=config.CLOUDINARY_API_KEY,
                api_secret=config.CLOUDINARY_API_SECRET,
                secure=True,
            )

    def upload(self, data: bytes, folder: str, resource_type: str = "image") -> str:
        try:
            result = cloudinary.uploader.upload(io.BytesIO(data), folder=folder, resource_type=resource_type)
        except cloudinary.exceptions.Error as e:
            logger.error("Upload to %s failed: %s", folder, e)
            raise UploadError(str(e)) from e
        url = result.get("secure_url")
        if not url:
            raise UploadError("Media host returned no URL")
        return url


class ExistingUrl(BaseModel):
    kind: Literal["ExistingUrl"] = "ExistingUrl"
    url: str


class PendingUpload(BaseModel):
    kind: Literal["PendingUpload"] = "PendingUpload"
    data: bytes
    resource_type: str = "image"


MediaField = Union[ExistingUrl, PendingUpload, None]


def media_field(data: Optional[bytes] = None, url: Optional[str] = None, fallback: Optional[str] = None,
                resource_type: str = "image") -> MediaField:
    """A new file beats a submitted URL, which beats what is already stored."""
    if data:
        return PendingUpload(data=data, resource_type=resource_type)
    if url:
        return ExistingUrl(url=url)
    if fallback:
        return ExistingUrl(url=fallback)
    return None


def resolve(field: MediaField, uploader: Uploader, folder: str) -> Optional[str]:
    if field is None:
        return None
    if isinstance(field, ExistingUrl):
        return field.url
    return uploader.upload(field.data, folder, field.resource_type)
