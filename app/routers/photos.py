import logging
import os
import uuid as uuid_mod
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_identity
from app.models.photo import Photo
from app.schemas.auth import AuthIdentity
from app.schemas.photo import PhotoResponse
from app.services.storage import ObjectStore, ObjectStoreError, build_object_key, get_object_store
from app.utils.exceptions import Forbidden, InvalidInput, NotFound, UpstreamUnavailable
from app.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["photos"])

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/heic": ".heic",
}


@router.post("", status_code=201)
async def upload_photo(
    file: UploadFile = File(...),
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    content_type = file.content_type or ""
    extension = ALLOWED_CONTENT_TYPES.get(content_type)
    if extension is None:
        raise InvalidInput(f"Unsupported file type: {content_type or 'unknown'}", code="unsupported_file_type")

    content = await file.read()
    if not content:
        raise InvalidInput("Empty file", code="empty_file")
    if len(content) > settings.max_photo_size_bytes:
        raise InvalidInput("File too large", code="file_too_large")

    photo_id = str(uuid_mod.uuid4())
    key = build_object_key(f"photos/{identity.user_id}/{photo_id}{extension}")
    try:
        url = await store.put(key, content, content_type)
    except ObjectStoreError as e:
        logger.error("Photo upload failed for %s: %s", identity.user_id, e)
        raise UpstreamUnavailable("Photo storage is unavailable") from e

    photo = Photo(
        id=photo_id,
        user_id=identity.user_id,
        file_path=url,
        original_filename=os.path.basename(file.filename or "photo"),
        content_type=content_type,
        file_size=len(content),
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    db.add(photo)
    await db.commit()

    return success_response(data=PhotoResponse.model_validate(photo).model_dump())


@router.get("")
async def list_photos(
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Photo).where(Photo.user_id == identity.user_id).order_by(Photo.created_at.desc())
    )
    data = [PhotoResponse.model_validate(p).model_dump() for p in result.scalars().all()]
    return success_response(data=data)


@router.delete("/{photo_id}")
async def delete_photo(
    photo_id: str,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    photo = await db.get(Photo, photo_id)
    if photo is None:
        raise NotFound("Photo not found", code="photo_not_found")
    if photo.user_id != identity.user_id:
        raise Forbidden("You do not own this photo", code="not_photo_owner")

    try:
        await store.delete(store.key_from_url(photo.file_path))
    except ObjectStoreError as e:
        logger.error("Failed to delete stored object for photo %s: %s", photo_id, e)
        raise UpstreamUnavailable("Photo storage is unavailable") from e

    await db.execute(delete(Photo).where(Photo.id == photo_id))
    await db.commit()
    return success_response(message="Photo deleted")
