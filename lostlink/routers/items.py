import uuid
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from sqlmodel import Session

from lostlink.db.db import get_session
from lostlink.db.repositories import ItemRepository
from lostlink.models.item import Item
from lostlink.services.lifecycle import MatchLifecycleManager
from lostlink.services.pipeline import MatchingServices, run_matching_pipeline
from lostlink.utils.auth_helper import get_current_user_id
from lostlink.utils.deps import get_lifecycle, get_services
from lostlink.utils.form_validator import validate_create_item_form, validate_item_update
from lostlink.utils.s3_service import compress_image, delete_s3_object, generate_signed_url, get_all_urls, upload_to_s3


router = APIRouter()

MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024


@router.post("/create")
async def add_item(
    background_tasks: BackgroundTasks,
    item_type: str = Form(...),
    description: str = Form(...),
    title: str = Form(""),
    category: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    condition: Optional[str] = Form(None),
    flaws: Optional[str] = Form(None),
    material: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    image: UploadFile = File(...),
    session: Session = Depends(get_session),
    services: MatchingServices = Depends(get_services),
    user_id: str = Depends(get_current_user_id),
):
    form = validate_create_item_form(
        item_type=item_type,
        description=description,
        title=title,
        category=category,
        colors=colors,
        brand=brand,
        condition=condition,
        flaws=flaws,
        material=material,
        date=date,
        location=location,
    )

    # read image into memory and upload
    raw_bytes = await image.read()

    if len(raw_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

    buffer, ext = compress_image(raw_bytes)
    s3_key = upload_to_s3(buffer, ext, image.filename)

    db_item = Item(
        user_id=user_id,
        type=form.item_type,
        title=form.title,
        description=form.description,
        category=form.category,
        colors=form.colors,
        brand=form.brand,
        condition=form.condition,
        flaws=form.flaws,
        material=form.material,
        observed_at=form.observed_at,
        image=s3_key,
    )
    db_item.set_location(form.location)

    db_item = ItemRepository(session).add(db_item)

    # matching never blocks or fails the upload
    background_tasks.add_task(run_matching_pipeline, db_item.id, services)

    return db_item.id


@router.get("/all")
async def get_all_items(
    item_type: Optional[str] = None,
    user_id: Optional[str] = None,
    session: Session = Depends(get_session),
):
    if item_type is not None and item_type not in ("lost", "found"):
        raise HTTPException(400, "Invalid item type")

    items = ItemRepository(session).find(item_type=item_type)

    if user_id:
        items = [item for item in items if item.user_id == user_id]

    return {
        "items": get_all_urls(items),
    }


@router.get("/{item_id}")
async def get_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    item = ItemRepository(session).find_by_id(item_id)
    if not item:
        raise HTTPException(404, "Item not found")

    item_dict = item.model_dump()
    item_dict["image"] = generate_signed_url(item.image)

    return {"item": item_dict}


@router.put("/{item_id}")
async def update_item(
    item_id: uuid.UUID,
    updates: dict,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    items = ItemRepository(session)

    item = items.find_by_id(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    # ownership check
    if item.user_id != user_id:
        raise HTTPException(
            status_code=403,
            detail="Unauthorized to edit this item",
        )

    values = validate_item_update(updates)
    if values:
        items.update_fields(item.id, values)

    return item.id


@router.delete("/{item_id}")
async def delete_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
    user_id: str = Depends(get_current_user_id),
):
    items = ItemRepository(session)

    item = items.find_by_id(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    # ownership check
    if item.user_id != user_id:
        raise HTTPException(
            status_code=403,
            detail="Unauthorized to delete this item",
        )

    lifecycle.purge_item(item.id)

    image_key = item.image
    items.delete_by_id(item.id)
    delete_s3_object(image_key)

    return True
