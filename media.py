"""Image uploads to Cloudinary.

Covers and profile pictures are stored by reference: the file goes to
Cloudinary through its SDK and only the returned ``secure_url`` is kept in
MongoDB.
"""
import logging
import os

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from errors import MediaUploadError, ValidationError

logger = logging.getLogger(__name__)

PROFILE_FOLDER = "book-haven/profiles"
COVER_FOLDER = "book-haven/covers"
ALLOWED_FORMATS = ["jpg", "png"]
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png"}


def file_extension(filename):
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


class CloudinaryUploader:
    """Uploads with per-instance credentials instead of the SDK's global config."""

    def __init__(self, cloud_name, api_key, api_secret, timeout=10):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            cloud_name=config.get("CLOUDINARY_CLOUD_NAME"),
            api_key=config.get("CLOUDINARY_API_KEY"),
            api_secret=config.get("CLOUDINARY_API_SECRET"),
            timeout=config.get("HTTP_TIMEOUT", 10),
        )

    def upload(self, file, folder):
        """Upload a werkzeug ``FileStorage`` and return its durable URL."""
        if file_extension(file.filename) not in ALLOWED_EXTENSIONS:
            raise ValidationError("Only jpg and png images are allowed")
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise MediaUploadError("Image uploads are not configured")

        try:
            result = cloudinary.uploader.upload(
                file.stream,
                folder=folder,
                allowed_formats=ALLOWED_FORMATS,
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                timeout=self.timeout,
            )
        except CloudinaryError as e:
            logger.error("Cloudinary upload of %s failed: %s", file.filename, e)
            raise MediaUploadError("Image upload failed") from e

        secure_url = (result or {}).get("secure_url")
        if not secure_url:
            raise MediaUploadError("Image upload failed")
        logger.info("Uploaded %s to %s", file.filename, folder)
        return secure_url
