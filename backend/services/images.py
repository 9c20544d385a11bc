"""Product image storage: bytes in, URL out, with a rolling per-product cap."""
import logging
import uuid
from pathlib import Path
from typing import List, Tuple

from fastapi import UploadFile
from sqlalchemy.orm import Session

from config import settings
from models.product import Product, ProductImage
from utils.errors import ValidationError, NotFoundError, UnexpectedError

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}
MAX_FILES_PER_REQUEST = 5
URL_PREFIX = "/uploads/products"


def images_dir() -> Path:
    path = Path(settings.UPLOAD_DIR) / "products"
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_upload(file: UploadFile) -> Tuple[bytes, str]:
    """Validate type and size of an uploaded file and return its bytes and extension."""
    ext = ALLOWED_TYPES.get(file.content_type or "")
    if ext is None:
        raise ValidationError(
            "Invalid file type",
            [f"{file.filename}: only JPEG, PNG, WEBP and GIF images are allowed"],
        )
    try:
        data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    finally:
        file.file.close()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            "File too large",
            [f"{file.filename}: maximum size is {settings.MAX_UPLOAD_BYTES} bytes"],
        )
    if not data:
        raise ValidationError("Empty file", [f"{file.filename}: file is empty"])
    return data, ext


def store_bytes(data: bytes, ext: str) -> Tuple[str, str]:
    """Write bytes under the upload dir, returning (url, file path)."""
    filename = f"{uuid.uuid4().hex}.{ext}"
    path = images_dir() / filename
    try:
        with open(path, "wb") as buffer:
            buffer.write(data)
    except OSError as e:
        remove_file(str(path))
        logger.error("Image write failed for %s: %s", path, e)
        raise UnexpectedError("File save error") from e
    return f"{URL_PREFIX}/{filename}", str(path)


def remove_file(path) -> None:
    if not path:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove image file %s: %s", path, e)


def _ensure_primary(images: List[ProductImage]) -> None:
    if images and not any(img.is_primary for img in images):
        images[0].is_primary = True


def get_image(product: Product, image_id: int) -> ProductImage:
    for img in product.images:
        if img.id == image_id:
            return img
    raise NotFoundError("Image not found")


def attach_images(db: Session, product: Product, uploads: List[Tuple[bytes, str]]) -> List[ProductImage]:
    """Store the uploads and append them to the product, evicting the oldest over the cap."""
    stored = []
    try:
        for data, ext in uploads:
            stored.append(store_bytes(data, ext))
    except Exception:
        for _, path in stored:
            remove_file(path)
        raise

    added = []
    for url, path in stored:
        img = ProductImage(url=url, file_path=path, is_primary=not product.images and not added)
        product.images.append(img)
        added.append(img)

    evicted = []
    while len(product.images) > settings.MAX_PRODUCT_IMAGES:
        oldest = product.images[0]
        product.images.remove(oldest)
        evicted.append(oldest)
    _ensure_primary(product.images)

    try:
        db.commit()
    except Exception:
        db.rollback()
        for _, path in stored:
            remove_file(path)
        raise

    for img in evicted:
        remove_file(img.file_path)
    if evicted:
        logger.info("Evicted %d image(s) from product %s", len(evicted), product.id)

    db.refresh(product)
    return [img for img in added if img not in evicted]


def delete_image(db: Session, product: Product, image_id: int) -> None:
    img = get_image(product, image_id)
    path = img.file_path
    product.images.remove(img)
    _ensure_primary(product.images)
    db.commit()
    remove_file(path)
    db.refresh(product)


def set_primary(db: Session, product: Product, image_id: int) -> ProductImage:
    target = get_image(product, image_id)
    for img in product.images:
        img.is_primary = img is target
    db.commit()
    db.refresh(product)
    return target
