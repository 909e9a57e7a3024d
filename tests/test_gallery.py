import pytest
from fastapi import HTTPException

import storage
from database import SessionLocal
from models import GalleryItem

from conftest import API, auth_headers, make_user

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


def _upload(client, user, title="Campus Fest", media_type="image", category=None, tags=None,
            filename="photo.png", content=PNG_BYTES, content_type="image/png"):
    form = {"title": title, "media_type": media_type}
    if category:
        form["category"] = category
    if tags is not None:
        form["tags"] = tags
    return client.post(
        f"{API}/gallery/create",
        data=form,
        files={"media": (filename, content, content_type)},
        headers=auth_headers(user),
    )


def _item_count():
    db = SessionLocal()
    try:
        return db.query(GalleryItem).count()
    finally:
        db.close()


def test_create_gallery_item(client, fake_storage):
    uploader = make_user(full_name="Photo Club")
    response = _upload(client, uploader, tags="fest, night ,crowd", category="events")
    assert response.status_code == 201
    item = response.json()["data"]
    assert item["title"] == "Campus Fest"
    assert item["media_type"] == "image"
    assert item["category"] == "events"
    assert item["tags"] == ["fest", "night", "crowd"]
    assert item["media_url"] == item["thumbnail_url"]
    assert item["storage_key"] == "gallery/1-photo.png"
    assert item["metadata"]["width"] == 640
    assert item["view_count"] == 0
    assert item["uploaded_by"]["full_name"] == "Photo Club"


def test_create_video_has_no_thumbnail(client, fake_storage):
    uploader = make_user()
    response = _upload(client, uploader, media_type="video", filename="clip.mp4", content=MP4_BYTES,
                       content_type="video/mp4", tags='["dance", "stage"]')
    assert response.status_code == 201
    item = response.json()["data"]
    assert item["thumbnail_url"] is None
    assert item["category"] == "general"
    assert item["tags"] == ["dance", "stage"]


def test_create_gallery_item_rejections(client, fake_storage):
    uploader = make_user()
    assert client.post(f"{API}/gallery/create", data={"title": "x", "media_type": "image"}).status_code == 401

    no_file = client.post(
        f"{API}/gallery/create",
        data={"title": "No File", "media_type": "image"},
        headers=auth_headers(uploader),
    )
    assert no_file.status_code == 400
    assert no_file.json()["message"] == "Media file is required"

    bad_type = _upload(client, uploader, filename="notes.pdf", content=b"%PDF-1.4", content_type="application/pdf")
    assert bad_type.status_code == 400
    assert bad_type.json()["message"].startswith("Invalid file type")

    mismatch = _upload(client, uploader, media_type="video")
    assert mismatch.status_code == 400

    bad_media_type = _upload(client, uploader, media_type="audio")
    assert bad_media_type.status_code == 400
    assert bad_media_type.json()["message"] == "Validation failed"

    assert fake_storage["uploaded"] == []
    assert _item_count() == 0


def test_get_gallery_item_counts_views(client, fake_storage):
    uploader = make_user()
    item_id = _upload(client, uploader).json()["data"]["id"]

    assert client.get(f"{API}/gallery/{item_id}").json()["data"]["view_count"] == 1
    assert client.get(f"{API}/gallery/{item_id}").json()["data"]["view_count"] == 2
    missing = client.get(f"{API}/gallery/999")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Gallery item not found"


def test_list_gallery_filters_sorting_and_pagination(client, fake_storage):
    uploader = make_user()
    _upload(client, uploader, title="Bravo Stage", category="cultural", tags="dance")
    _upload(client, uploader, title="Alpha Lab", category="technical", tags="robots")
    _upload(client, uploader, title="Charlie Clip", media_type="video", category="cultural",
            filename="clip.mp4", content=MP4_BYTES, content_type="video/mp4")

    listing = client.get(f"{API}/gallery").json()["data"]
    assert listing["pagination"]["total_items"] == 3
    assert listing["pagination"]["items_per_page"] == 40
    assert listing["pagination"]["has_next_page"] is False
    assert listing["pagination"]["has_prev_page"] is False

    by_title = client.get(f"{API}/gallery", params={"sort_by": "title", "sort_order": "asc"}).json()["data"]
    assert [i["title"] for i in by_title["gallery_items"]] == ["Alpha Lab", "Bravo Stage", "Charlie Clip"]

    cultural = client.get(f"{API}/gallery", params={"category": "cultural"}).json()["data"]
    assert {i["title"] for i in cultural["gallery_items"]} == {"Bravo Stage", "Charlie Clip"}

    videos = client.get(f"{API}/gallery", params={"media_type": "video", "category": "all"}).json()["data"]
    assert [i["title"] for i in videos["gallery_items"]] == ["Charlie Clip"]

    tagged = client.get(f"{API}/gallery", params={"search": "robot"}).json()["data"]
    assert [i["title"] for i in tagged["gallery_items"]] == ["Alpha Lab"]

    first_page = client.get(f"{API}/gallery", params={"limit": 2, "sort_by": "title", "sort_order": "asc"}).json()["data"]
    assert first_page["pagination"]["total_pages"] == 2
    assert first_page["pagination"]["has_next_page"] is True
    second_page = client.get(f"{API}/gallery", params={"limit": 2, "page": 2, "sort_by": "title", "sort_order": "asc"}).json()["data"]
    assert [i["title"] for i in second_page["gallery_items"]] == ["Charlie Clip"]
    assert second_page["pagination"]["has_prev_page"] is True


def test_categories_and_inactive_items(client, fake_storage):
    uploader = make_user()
    _upload(client, uploader, category="sports")
    hidden = _upload(client, uploader, category="archive").json()["data"]
    client.patch(f"{API}/gallery/update/{hidden['id']}", data={"is_active": "false"}, headers=auth_headers(uploader))

    assert client.get(f"{API}/gallery/categories").json()["data"] == ["sports"]
    inactive = client.get(f"{API}/gallery", params={"is_active": "false"}).json()["data"]
    assert [i["id"] for i in inactive["gallery_items"]] == [hidden["id"]]


def test_update_gallery_item_fields(client, fake_storage):
    uploader = make_user()
    item = _upload(client, uploader).json()["data"]

    response = client.patch(
        f"{API}/gallery/update/{item['id']}",
        data={"title": "Renamed", "tags": "one,two"},
        headers=auth_headers(uploader),
    )
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["title"] == "Renamed"
    assert updated["tags"] == ["one", "two"]
    assert updated["storage_key"] == item["storage_key"]
    assert fake_storage["deleted"] == []


def test_update_gallery_item_replaces_media(client, fake_storage):
    uploader = make_user()
    item = _upload(client, uploader).json()["data"]

    response = client.patch(
        f"{API}/gallery/update/{item['id']}",
        files={"media": ("fresh.png", PNG_BYTES, "image/png")},
        headers=auth_headers(uploader),
    )
    assert response.status_code == 200
    assert fake_storage["deleted"] == ["gallery/1-photo.png"]
    assert response.json()["data"]["storage_key"] == "gallery/2-fresh.png"


def test_failed_remote_delete_keeps_item_unchanged(client, fake_storage, monkeypatch):
    uploader = make_user()
    item = _upload(client, uploader).json()["data"]

    def broken_delete(key):
        raise HTTPException(status_code=500, detail="Failed to delete media from cloud storage")

    monkeypatch.setattr(storage, "delete_media", broken_delete)
    response = client.patch(
        f"{API}/gallery/update/{item['id']}",
        data={"title": "Should Not Stick"},
        files={"media": ("fresh.png", PNG_BYTES, "image/png")},
        headers=auth_headers(uploader),
    )
    assert response.status_code == 500
    current = client.get(f"{API}/gallery/{item['id']}").json()["data"]
    assert current["title"] == "Campus Fest"
    assert current["storage_key"] == item["storage_key"]


def test_only_uploader_can_modify(client, fake_storage):
    uploader = make_user()
    other = make_user(email="other@example.com", usn="1AB21CS002")
    item = _upload(client, uploader).json()["data"]

    assert client.patch(f"{API}/gallery/update/{item['id']}", data={"title": "Mine"}, headers=auth_headers(other)).status_code == 403
    assert client.delete(f"{API}/gallery/delete/{item['id']}", headers=auth_headers(other)).status_code == 403
    assert fake_storage["deleted"] == []


def test_delete_gallery_item(client, fake_storage):
    uploader = make_user()
    item = _upload(client, uploader).json()["data"]

    response = client.delete(f"{API}/gallery/delete/{item['id']}", headers=auth_headers(uploader))
    assert response.status_code == 200
    assert fake_storage["deleted"] == [item["storage_key"]]
    assert _item_count() == 0
    assert client.delete(f"{API}/gallery/delete/{item['id']}", headers=auth_headers(uploader)).status_code == 404


def test_bulk_delete(client, fake_storage):
    uploader = make_user()
    ids = [_upload(client, uploader, title=f"Item {i}").json()["data"]["id"] for i in range(3)]

    response = client.post(f"{API}/gallery/bulk-delete", json={"ids": ids[:2] + [999]}, headers=auth_headers(uploader))
    assert response.status_code == 200
    assert response.json()["data"] == {"deleted_count": 2}
    assert sorted(fake_storage["deleted"]) == ["gallery/1-photo.png", "gallery/2-photo.png"]
    assert _item_count() == 1


def test_bulk_delete_rejections(client, fake_storage):
    uploader = make_user()
    other = make_user(email="other@example.com", usn="1AB21CS002")
    mine = _upload(client, uploader).json()["data"]["id"]
    theirs = _upload(client, other).json()["data"]["id"]

    empty = client.post(f"{API}/gallery/bulk-delete", json={"ids": []}, headers=auth_headers(uploader))
    assert empty.status_code == 400
    assert empty.json()["message"] == "Please provide an array of gallery item IDs"

    none_found = client.post(f"{API}/gallery/bulk-delete", json={"ids": [12345]}, headers=auth_headers(uploader))
    assert none_found.status_code == 404

    mixed = client.post(f"{API}/gallery/bulk-delete", json={"ids": [mine, theirs]}, headers=auth_headers(uploader))
    assert mixed.status_code == 403
    assert fake_storage["deleted"] == []
    assert _item_count() == 2


def test_gallery_stats(client, fake_storage):
    uploader = make_user()
    first = _upload(client, uploader, category="sports").json()["data"]
    _upload(client, uploader, category="sports")
    _upload(client, uploader, media_type="video", category="music",
            filename="clip.mp4", content=MP4_BYTES, content_type="video/mp4")
    client.get(f"{API}/gallery/{first['id']}")

    assert client.get(f"{API}/gallery/stats").status_code == 401
    stats = client.get(f"{API}/gallery/stats", headers=auth_headers(uploader)).json()["data"]
    assert stats["total_items"] == 3
    assert stats["active_items"] == 3
    assert stats["inactive_items"] == 0
    assert stats["image_count"] == 2
    assert stats["video_count"] == 1
    assert stats["total_views"] == 1
    assert stats["category_counts"] == [{"category": "sports", "count": 2}, {"category": "music", "count": 1}]
    assert len(stats["recent_items"]) == 3


@pytest.mark.parametrize("media_type", ["all", None])
def test_media_type_all_disables_filter(client, fake_storage, media_type):
    uploader = make_user()
    _upload(client, uploader)
    params = {"media_type": media_type} if media_type else {}
    assert client.get(f"{API}/gallery", params=params).json()["data"]["pagination"]["total_items"] == 1


def test_search_matches_individual_tags(client, fake_storage):
    uploader = make_user()
    _upload(client, uploader, title="Evening Lights", tags="fête,campus")
    _upload(client, uploader, title="Lab Shot", tags="a,b")

    def titles(search):
        data = client.get(f"{API}/gallery", params={"search": search}).json()["data"]
        return [i["title"] for i in data["gallery_items"]]

    assert titles("fête") == ["Evening Lights"]
    assert titles("CAMP") == ["Evening Lights"]
    assert titles('", "') == []
    assert titles('"a"') == []


def test_gallery_limit_is_clamped(client, fake_storage):
    uploader = make_user()
    _upload(client, uploader)
    response = client.get(f"{API}/gallery", params={"limit": 500})
    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["items_per_page"] == 100
