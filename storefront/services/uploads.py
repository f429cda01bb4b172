# storefront/services/uploads.py
"""
Image uploads. Files go to Cloudinary when it is configured, otherwise they
are written under the app's static uploads directory. Callers only ever get
back the public URL that is stored on the record.
"""
import os
import uuid

import cloudinary
import cloudinary.uploader
import cloudinary.exceptions
from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import ValidationError, UpstreamError
from ..utils.parsing import slugify

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
MAX_DIMENSION = 500


def _allowed(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def cloudinary_enabled() -> bool:
    cfg = current_app.config
    return bool(cfg.get("CLOUDINARY_URL") or cfg.get("CLOUDINARY_CLOUD_NAME"))


def _configure_cloudinary():
    cfg = current_app.config
    if cfg.get("CLOUDINARY_CLOUD_NAME"):
        cloudinary.config(
            cloud_name=cfg["CLOUDINARY_CLOUD_NAME"],
            api_key=cfg.get("CLOUDINARY_API_KEY"),
            api_secret=cfg.get("CLOUDINARY_API_SECRET"),
            secure=True,
        )
    # CLOUDINARY_URL in the environment is picked up by the SDK itself


def _upload_to_cloudinary(file_storage, folder: str, public_id: str) -> str:
    _configure_cloudinary()
    try:
        result = cloudinary.uploader.upload(
            file_storage.stream,
            folder=folder,
            public_id=public_id,
            resource_type="image",
            transformation=[{"width": MAX_DIMENSION, "height": MAX_DIMENSION, "crop": "limit"}],
        )
    except cloudinary.exceptions.Error as e:
        current_app.logger.error("Image upload to %s failed: %s", folder, e)
        raise UpstreamError("Image upload failed")
    return result["secure_url"]


def _save_locally(file_storage, folder: str, public_id: str) -> str:
    ext = os.path.splitext(secure_filename(file_storage.filename))[1].lower()
    subdir = current_app.config.get("UPLOAD_SUBDIR", "static/uploads")
    upload_dir = os.path.join(current_app.root_path, subdir, folder)
    os.makedirs(upload_dir, exist_ok=True)
    filename = f"{public_id}{ext}"
    file_storage.save(os.path.join(upload_dir, filename))
    return f"/{subdir}/{folder}/{filename}"


def save_image(file_storage, folder: str = "products", name_hint: str | None = None) -> str | None:
    """Store one uploaded image and return its public URL (None if no file)."""
    if not file_storage or not file_storage.filename:
        return None
    if not _allowed(file_storage.filename):
        raise ValidationError("Not an image! Please upload only images.")
    if file_storage.mimetype and not file_storage.mimetype.startswith("image/"):
        raise ValidationError("Not an image! Please upload only images.")

    base = slugify(name_hint) if name_hint else "image"
    public_id = f"{base or 'image'}-{uuid.uuid4().hex[:12]}"

    if cloudinary_enabled():
        url = _upload_to_cloudinary(file_storage, folder, public_id)
    else:
        url = _save_locally(file_storage, folder, public_id)
    current_app.logger.debug("Stored image %s", url)
    return url


def save_images(files, field: str, folder: str = "products", name_hint: str | None = None) -> list[str]:
    return [u for u in (save_image(f, folder, name_hint) for f in files.getlist(field)) if u]
