import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func
from sqlalchemy.orm import Session

import storage
from database import get_db
from models import GalleryItem, MediaType, User
from responses import api_response
from routers.shared import (
    build_gallery_item_response,
    build_pagination,
    clamp_limit,
    form_values,
    has_file,
    json_array_any,
)
from schemas import (
    BulkDeleteRequest,
    CategoryCount,
    GalleryItemCreate,
    GalleryItemUpdate,
    GalleryListResponse,
    GalleryStatsResponse,
    MediaTypeEnum,
    RecentGalleryItem,
)
from security import ensure_owner, require_user
from uploads import StagedFile, staged_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gallery", tags=["gallery"])

GALLERY_KEY_PREFIX = "gallery"
RECENT_ITEMS_LIMIT = 5
SORT_COLUMNS = {
    "created_at": GalleryItem.created_at,
    "title": GalleryItem.title,
    "view_count": GalleryItem.view_count,
    "category": GalleryItem.category,
}


def _get_item_or_404(db: Session, item_id: int) -> GalleryItem:
    item = db.query(GalleryItem).filter(GalleryItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gallery item not found")
    return item


def _ensure_matches_media_type(staged: StagedFile, media_type: str) -> None:
    if not staged.content_type.startswith(f"{media_type}/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Uploaded file does not match media type '{media_type}'",
        )


def _upload(staged: StagedFile) -> dict:
    return storage.upload_media(staged.path, GALLERY_KEY_PREFIX, staged.content_type, staged.filename)


def _thumbnail_for(media_type: str, url: str) -> Optional[str]:
    return url if media_type == MediaTypeEnum.IMAGE.value else None


@router.get("")
def list_gallery_items(
    page: int = Query(1, ge=1),
    limit: int = Query(40, ge=1),
    category: Optional[str] = None,
    media_type: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    is_active: Optional[bool] = True,
    db: Session = Depends(get_db),
):
    limit = clamp_limit(limit)
    query = db.query(GalleryItem)
    if is_active is not None:
        query = query.filter(GalleryItem.is_active.is_(is_active))
    if category and category != "all":
        query = query.filter(GalleryItem.category == category)
    if media_type and media_type != "all":
        if media_type not in {item.value for item in MediaTypeEnum}:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="media_type must be image, video or all")
        query = query.filter(GalleryItem.media_type == MediaType(media_type))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            (GalleryItem.title.ilike(pattern)) |
            (GalleryItem.description.ilike(pattern)) |
            json_array_any(db, GalleryItem.tags, lambda tag: tag.ilike(pattern))
        )

    column = SORT_COLUMNS.get(sort_by, GalleryItem.created_at)
    ordering = column.asc() if sort_order.lower() == "asc" else column.desc()

    total = query.count()
    items = query.order_by(ordering, GalleryItem.id.desc()).offset((page - 1) * limit).limit(limit).all()
    payload = GalleryListResponse(
        gallery_items=[build_gallery_item_response(item) for item in items],
        pagination=build_pagination(page, limit, total, with_navigation=True),
    )
    return api_response(status.HTTP_200_OK, payload, "Gallery items fetched successfully")


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    rows = (
        db.query(GalleryItem.category)
        .filter(GalleryItem.is_active.is_(True))
        .distinct()
        .order_by(GalleryItem.category.asc())
        .all()
    )
    return api_response(status.HTTP_200_OK, [row[0] for row in rows], "Categories fetched successfully")


@router.get("/stats")
def gallery_stats(user: User = Depends(require_user), db: Session = Depends(get_db)):
    total_items = db.query(func.count(GalleryItem.id)).scalar() or 0
    active_items = db.query(func.count(GalleryItem.id)).filter(GalleryItem.is_active.is_(True)).scalar() or 0
    image_count = db.query(func.count(GalleryItem.id)).filter(GalleryItem.media_type == MediaType.IMAGE).scalar() or 0
    video_count = db.query(func.count(GalleryItem.id)).filter(GalleryItem.media_type == MediaType.VIDEO).scalar() or 0
    total_views = db.query(func.coalesce(func.sum(GalleryItem.view_count), 0)).scalar() or 0

    category_rows = (
        db.query(GalleryItem.category, func.count(GalleryItem.id).label("count"))
        .filter(GalleryItem.is_active.is_(True))
        .group_by(GalleryItem.category)
        .order_by(func.count(GalleryItem.id).desc(), GalleryItem.category.asc())
        .all()
    )
    recent = (
        db.query(GalleryItem)
        .filter(GalleryItem.is_active.is_(True))
        .order_by(GalleryItem.created_at.desc(), GalleryItem.id.desc())
        .limit(RECENT_ITEMS_LIMIT)
        .all()
    )

    payload = GalleryStatsResponse(
        total_items=total_items,
        active_items=active_items,
        inactive_items=total_items - active_items,
        image_count=image_count,
        video_count=video_count,
        total_views=int(total_views),
        category_counts=[CategoryCount(category=row[0], count=row[1]) for row in category_rows],
        recent_items=[
            RecentGalleryItem(
                id=item.id,
                title=item.title,
                media_type=MediaTypeEnum(item.media_type.value),
                category=item.category,
                view_count=item.view_count or 0,
                created_at=item.created_at,
            )
            for item in recent
        ],
    )
    return api_response(status.HTTP_200_OK, payload, "Gallery statistics fetched successfully")


@router.post("/create")
def create_gallery_item(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    media_type: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    media: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    payload = GalleryItemCreate.model_validate(form_values(
        title=title,
        description=description,
        media_type=media_type,
        category=category,
        tags=tags,
    ))
    if not has_file(media):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Media file is required")

    with staged_upload(media, "media") as staged:
        _ensure_matches_media_type(staged, payload.media_type.value)
        uploaded = _upload(staged)

    item = GalleryItem(
        title=payload.title,
        description=payload.description,
        media_type=MediaType(payload.media_type.value),
        media_url=uploaded["url"],
        thumbnail_url=_thumbnail_for(payload.media_type.value, uploaded["url"]),
        storage_key=uploaded["key"],
        category=payload.category,
        tags=payload.tags,
        uploaded_by_id=user.id,
        is_active=True,
        view_count=0,
        media_metadata=uploaded["metadata"],
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Gallery item %s uploaded by user %s (%s)", item.id, user.id, item.storage_key)
    return api_response(status.HTTP_201_CREATED, build_gallery_item_response(item), "Gallery item created successfully")


@router.post("/bulk-delete")
async def bulk_delete_gallery_items(
    payload: BulkDeleteRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    if not payload.ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please provide an array of gallery item IDs")

    items = db.query(GalleryItem).filter(GalleryItem.id.in_(payload.ids)).all()
    if not items:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No gallery items found")
    for item in items:
        ensure_owner(item.uploaded_by_id, user, "You can only delete gallery items you uploaded")

    # Remote objects go first; rows stay if any of them fails
    await asyncio.gather(*(run_in_threadpool(storage.delete_media, item.storage_key) for item in items))

    for item in items:
        db.delete(item)
    db.commit()
    logger.info("User %s bulk-deleted %s gallery items", user.id, len(items))
    return api_response(status.HTTP_200_OK, {"deleted_count": len(items)}, f"{len(items)} gallery items deleted successfully")


@router.patch("/update/{item_id}")
def update_gallery_item(
    item_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None),
    media: Optional[UploadFile] = File(None),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    item = _get_item_or_404(db, item_id)
    ensure_owner(item.uploaded_by_id, user, "You can only update gallery items you uploaded")

    payload = GalleryItemUpdate.model_validate(form_values(
        title=title,
        description=description,
        category=category,
        tags=tags,
        is_active=is_active,
    ))
    changes = payload.model_dump(exclude_unset=True)

    if has_file(media):
        with staged_upload(media, "media") as staged:
            _ensure_matches_media_type(staged, item.media_type.value)
            storage.delete_media(item.storage_key)
            uploaded = _upload(staged)
        changes.update(
            media_url=uploaded["url"],
            thumbnail_url=_thumbnail_for(item.media_type.value, uploaded["url"]),
            storage_key=uploaded["key"],
            media_metadata=uploaded["metadata"],
        )

    for field, value in changes.items():
        setattr(item, field, value)

    db.commit()
    db.refresh(item)
    logger.info("Gallery item %s updated by user %s: %s", item.id, user.id, sorted(changes))
    return api_response(status.HTTP_200_OK, build_gallery_item_response(item), "Gallery item updated successfully")


@router.delete("/delete/{item_id}")
def delete_gallery_item(item_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    item = _get_item_or_404(db, item_id)
    ensure_owner(item.uploaded_by_id, user, "You can only delete gallery items you uploaded")

    storage.delete_media(item.storage_key)
    db.delete(item)
    db.commit()
    logger.info("Gallery item %s deleted by user %s", item_id, user.id)
    return api_response(status.HTTP_200_OK, None, "Gallery item deleted successfully")


@router.get("/{item_id}")
def get_gallery_item(item_id: int, db: Session = Depends(get_db)):
    item = _get_item_or_404(db, item_id)
    item.increment_view_count()
    db.commit()
    db.refresh(item)
    return api_response(status.HTTP_200_OK, build_gallery_item_response(item), "Gallery item fetched successfully")
