# backend/routes/upload.py
from typing import List

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.orm import Session

from database import get_db
from models.product import Product
from models.users import User
from schemas.product import ImageOut
from services import images as image_store
from utils.audit import write_log, client_ip
from utils.errors import NotFoundError, ValidationError
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/upload", tags=["Upload"])


def _get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _image_list(product: Product) -> List[ImageOut]:
    return [ImageOut.model_validate(img) for img in product.images]


@router.post("/product/{product_id}/image", status_code=status.HTTP_201_CREATED)
def upload_image(
    product_id: int,
    request: Request,
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    added = image_store.attach_images(db, product, [image_store.read_upload(image)])

    write_log(db, user_id=current_user.id, action="IMAGE_UPLOAD", resource="products",
              ip=client_ip(request), resource_id=product.id, meta={"count": 1})
    return {
        "success": True,
        "message": "Image uploaded",
        "data": {
            "image": ImageOut.model_validate(added[0]) if added else None,
            "images": _image_list(product),
        },
    }


@router.post("/product/{product_id}/images", status_code=status.HTTP_201_CREATED)
def upload_images(
    product_id: int,
    request: Request,
    images: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if len(images) > image_store.MAX_FILES_PER_REQUEST:
        raise ValidationError(
            "Too many files",
            [f"images: at most {image_store.MAX_FILES_PER_REQUEST} files per request"],
        )
    product = _get_product(db, product_id)
    # Every file is checked before anything is written
    uploads = [image_store.read_upload(f) for f in images]
    added = image_store.attach_images(db, product, uploads)

    write_log(db, user_id=current_user.id, action="IMAGE_UPLOAD", resource="products",
              ip=client_ip(request), resource_id=product.id, meta={"count": len(uploads)})
    return {
        "success": True,
        "message": f"{len(uploads)} image(s) uploaded",
        "data": {
            "uploaded": [ImageOut.model_validate(img) for img in added],
            "images": _image_list(product),
        },
    }


@router.get("/product/{product_id}/images")
def list_images(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    items = _image_list(product)
    return {"success": True, "data": items, "count": len(items)}


@router.delete("/product/{product_id}/image/{image_id}")
def delete_image(
    product_id: int,
    image_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    image_store.delete_image(db, product, image_id)

    write_log(db, user_id=current_user.id, action="IMAGE_DELETE", resource="products",
              ip=client_ip(request), resource_id=product.id, meta={"image_id": image_id})
    return {"success": True, "message": "Image deleted", "data": _image_list(product)}


@router.patch("/product/{product_id}/image/{image_id}/primary")
def set_primary_image(
    product_id: int,
    image_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    image_store.set_primary(db, product, image_id)

    write_log(db, user_id=current_user.id, action="IMAGE_PRIMARY", resource="products",
              ip=client_ip(request), resource_id=product.id, meta={"image_id": image_id})
    return {"success": True, "message": "Primary image updated", "data": _image_list(product)}
