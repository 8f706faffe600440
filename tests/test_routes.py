"""Route-level integration tests."""

from __future__ import annotations

import io

from PIL import Image

from candlelight.extensions import db
from candlelight.models import Candle, Tribute, User
from candlelight.services import content, tributes

from conftest import PASSWORD


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), (0, 128, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def _create_tribute(app, user_id: int, text: str) -> int:
    with app.app_context():
        owner = db.session.get(User, user_id)
        return tributes.create_tribute(owner=owner, content=text).id


# -- session ------------------------------------------------------------------


def test_register_ignores_admin_flag_and_signs_in(client, app) -> None:
    response = client.post(
        "/api/register",
        json={
            "username": "alice",
            "password": PASSWORD,
            "name": "Alice",
            "isAdmin": True,
            "is_admin": True,
        },
    )

    assert response.status_code == 201
    payload = response.get_json()
    assert payload["is_admin"] is False
    assert "password_hash" not in payload

    me = client.get("/api/user")
    assert me.status_code == 200
    assert me.get_json()["username"] == "alice"


def test_register_duplicate_username(client, make_user) -> None:
    make_user("alice")

    response = client.post(
        "/api/register",
        json={"username": "alice", "password": PASSWORD, "name": "Again"},
    )

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"


def test_register_validation_errors_are_json(client) -> None:
    response = client.post("/api/register", json={"username": "bob", "password": "x"})

    assert response.status_code == 400
    payload = response.get_json()
    assert payload["error"] == "validation_error"
    assert {"password", "name"} <= set(payload["details"])


def test_login_and_logout(client, make_user) -> None:
    make_user("alice")

    bad = client.post("/api/login", json={"username": "alice", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.get_json() == {"error": "unauthorized", "message": "Invalid credentials."}

    good = client.post("/api/login", json={"username": "alice", "password": PASSWORD})
    assert good.status_code == 200
    assert good.get_json()["username"] == "alice"

    assert client.post("/api/logout").status_code == 200
    assert client.get("/api/user").status_code == 401


def test_current_user_requires_session(client) -> None:
    response = client.get("/api/user")

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_csrf_token_endpoint(client) -> None:
    response = client.get("/api/csrf-token")

    assert response.status_code == 200
    assert response.get_json()["csrf_token"]


def test_unknown_api_route_is_json(client) -> None:
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


# -- tributes -----------------------------------------------------------------


def test_create_tribute_requires_login(client) -> None:
    response = client.post("/api/tributes", json={"content": "Hello"})

    assert response.status_code == 401


def test_create_and_list_tributes(client, make_user, login) -> None:
    make_user("alice")
    login("alice")

    created = client.post(
        "/api/tributes",
        json={
            "content": "  Forever loved  ",
            "media_url": "https://example.com/photo.jpg",
            "media_type": "image",
        },
    )
    assert created.status_code == 201
    body = created.get_json()
    assert body["content"] == "Forever loved"
    assert body["candle_count"] == 0
    assert body["has_lit_candle"] is False
    assert body["user"]["username"] == "alice"

    listing = client.get("/api/tributes")
    assert listing.status_code == 200
    payload = listing.get_json()
    assert [t["id"] for t in payload["tributes"]] == [body["id"]]
    assert payload["meta"]["page"] == 1
    assert payload["meta"]["has_next"] is False


def test_create_tribute_rejects_blank_content(client, make_user, login) -> None:
    make_user("alice")
    login("alice")

    response = client.post("/api/tributes", json={"content": "   "})

    assert response.status_code == 400
    assert response.get_json()["error"] == "validation_error"


def test_tribute_listing_paginates(client, app, make_user) -> None:
    owner_id = make_user("alice")
    ids = [_create_tribute(app, owner_id, f"Tribute {i}") for i in range(3)]

    response = client.get("/api/tributes?page=2&per_page=2")
    payload = response.get_json()

    assert [t["id"] for t in payload["tributes"]] == [ids[0]]
    assert payload["meta"]["has_prev"] is True
    assert payload["meta"]["prev_page"] == 1
    assert payload["meta"]["per_page"] == 2


def test_toggle_candle_flow(client, app, make_user, login) -> None:
    owner_id = make_user("owner")
    make_user("visitor")
    tribute_id = _create_tribute(app, owner_id, "Light a candle")

    anonymous = client.post(f"/api/tributes/{tribute_id}/candle")
    assert anonymous.status_code == 401

    login("visitor")
    lit = client.post(f"/api/tributes/{tribute_id}/candle")
    assert lit.status_code == 200
    assert lit.get_json() == {"tribute_id": tribute_id, "lit": True, "candle_count": 1}

    detail = client.get(f"/api/tributes/{tribute_id}").get_json()
    assert detail["has_lit_candle"] is True
    assert detail["candle_count"] == 1

    listing = client.get("/api/tributes").get_json()
    assert listing["tributes"][0]["has_lit_candle"] is True

    unlit = client.post(f"/api/tributes/{tribute_id}/candle")
    assert unlit.get_json() == {"tribute_id": tribute_id, "lit": False, "candle_count": 0}


def test_toggle_candle_missing_tribute(client, make_user, login) -> None:
    make_user("visitor")
    login("visitor")

    response = client.post("/api/tributes/999/candle")

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_delete_tribute_permissions(client, app, make_user, login) -> None:
    owner_id = make_user("owner")
    make_user("stranger")
    tribute_id = _create_tribute(app, owner_id, "Mine")

    login("stranger")
    forbidden = client.delete(f"/api/tributes/{tribute_id}")
    assert forbidden.status_code == 403
    assert forbidden.get_json()["error"] == "forbidden"

    client.post("/api/logout")
    login("owner")
    deleted = client.delete(f"/api/tributes/{tribute_id}")
    assert deleted.status_code == 200
    assert deleted.get_json() == {"message": "Tribute deleted successfully."}

    with app.app_context():
        assert db.session.get(Tribute, tribute_id) is None


# -- admin content --------------------------------------------------------------


def test_admin_routes_reject_regular_users(client, make_user, login) -> None:
    make_user("alice")

    assert client.put("/api/settings/siteTitle", json={"value": "x"}).status_code == 401

    login("alice")
    response = client.put("/api/settings/siteTitle", json={"value": "x"})
    assert response.status_code == 403
    assert client.get("/api/users").status_code == 403


def test_settings_roundtrip(client, make_user, login) -> None:
    make_user("root", admin=True)
    login("root")

    first = client.put("/api/settings/footerMessage", json={"value": "v1"})
    second = client.put("/api/settings/footerMessage", json={"value": "v2"})

    assert first.status_code == 200
    assert second.get_json() == {"key": "footerMessage", "value": "v2"}
    assert client.get("/api/settings").get_json() == {"footerMessage": "v2"}
    assert client.get("/api/settings/footerMessage").get_json() == {
        "key": "footerMessage",
        "value": "v2",
    }
    assert client.get("/api/settings/siteTitle").status_code == 404

    unknown = client.put("/api/settings/favouriteColour", json={"value": "blue"})
    assert unknown.status_code == 400
    empty = client.put("/api/settings/siteTitle", json={"value": ""})
    assert empty.status_code == 400


def test_funeral_program_routes(client, make_user, login) -> None:
    assert client.get("/api/funeral-program").status_code == 404

    make_user("root", admin=True)
    login("root")

    incomplete = client.put("/api/funeral-program", json={"date": "June 1"})
    assert incomplete.status_code == 400

    created = client.put(
        "/api/funeral-program",
        json={
            "date": "June 1",
            "time": "11:00 AM",
            "location": "Chapel",
            "address": "1 Church Road",
        },
    )
    assert created.status_code == 200

    patched = client.put("/api/funeral-program", json={"description": "A celebration"})
    body = patched.get_json()
    assert body["id"] == created.get_json()["id"]
    assert body["description"] == "A celebration"
    assert body["location"] == "Chapel"


def test_gallery_routes(client, make_user, login) -> None:
    make_user("root", admin=True)
    login("root")

    first = client.post(
        "/api/gallery",
        json={"image_url": "https://example.com/1.jpg", "display_order": 2},
    ).get_json()
    second = client.post(
        "/api/gallery",
        json={
            "image_url": "https://example.com/2.jpg",
            "caption": "Beach",
            "is_featured": True,
            "display_order": 1,
        },
    ).get_json()

    listing = client.get("/api/gallery").get_json()
    assert [image["id"] for image in listing] == [second["id"], first["id"]]
    paged = client.get("/api/gallery?limit=1&offset=1").get_json()
    assert [image["id"] for image in paged] == [first["id"]]
    featured = client.get("/api/gallery/featured").get_json()
    assert [image["id"] for image in featured] == [second["id"]]

    updated = client.put(f"/api/gallery/{first['id']}", json={"caption": "Lake"})
    assert updated.get_json()["caption"] == "Lake"
    assert updated.get_json()["image_url"] == "https://example.com/1.jpg"

    removed = client.delete(f"/api/gallery/{first['id']}")
    assert removed.get_json() == {"message": "Gallery image deleted successfully."}
    assert client.get(f"/api/gallery/{first['id']}").status_code == 404


def test_gallery_upload_without_s3_stores_data_url(client, app, make_user, login) -> None:
    app.config["S3_BUCKET_NAME"] = None
    make_user("root", admin=True)
    login("root")

    response = client.post(
        "/api/gallery/upload",
        data={
            "image": (io.BytesIO(_png_bytes()), "portrait.png", "image/png"),
            "caption": "Portrait",
            "is_featured": "y",
        },
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["image_url"].startswith("data:image/webp;base64,")
    assert body["caption"] == "Portrait"
    assert body["is_featured"] is True


def test_site_upload_returns_reference(client, app, make_user, login, monkeypatch) -> None:
    app.config["S3_BUCKET_NAME"] = "site-bucket"
    monkeypatch.setattr(
        "candlelight.services.s3.upload_bytes",
        lambda payload, **kwargs: (f"{kwargs['category']}/x.webp", "https://cdn/x.webp"),
    )
    make_user("root", admin=True)
    login("root")

    response = client.post(
        "/api/uploads",
        data={"image": (io.BytesIO(_png_bytes()), "header.png", "image/png")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    assert response.get_json() == {
        "url": "https://cdn/x.webp",
        "content_type": "image/webp",
        "key": "site/x.webp",
    }


def test_site_overview(client, app) -> None:
    with app.app_context():
        content.upsert_setting("siteTitle", "In Loving Memory")
        content.create_gallery_image(image_url="https://example.com/f.jpg", is_featured=True)

    payload = client.get("/api/site").get_json()

    assert payload["settings"]["site_title"] == "In Loving Memory"
    assert len(payload["featured_gallery"]) == 1
    assert payload["funeral_program"] is None


# -- user administration ------------------------------------------------------


def test_admin_cannot_demote_self_over_http(client, app, make_user, login) -> None:
    admin_id = make_user("root", admin=True)
    login("root")

    response = client.put(f"/api/users/{admin_id}/role", json={"is_admin": False})

    assert response.status_code == 403
    with app.app_context():
        assert db.session.get(User, admin_id).is_admin is True


def test_revoked_admin_loses_access_on_next_request(client, app, make_user, login) -> None:
    make_user("root", admin=True)
    deputy_id = make_user("deputy", admin=True)
    login("deputy")
    assert client.get("/api/users").status_code == 200

    with app.app_context():
        db.session.get(User, deputy_id).is_admin = False
        db.session.commit()

    assert client.get("/api/users").status_code == 403


def test_user_administration(client, app, make_user, login) -> None:
    make_user("root", admin=True)
    user_id = make_user("alice")
    other_id = _create_other_with_candle(app, make_user, user_id)
    login("root")

    users = client.get("/api/users").get_json()
    assert {u["username"] for u in users} == {"root", "alice", "bob"}

    promoted = client.put(f"/api/users/{user_id}/role", json={"is_admin": True})
    assert promoted.get_json()["is_admin"] is True
    missing_flag = client.put(f"/api/users/{user_id}/role", json={})
    assert missing_flag.status_code == 400

    reset = client.put(
        f"/api/users/{user_id}/reset-password", json={"new_password": "fresh-secret"}
    )
    assert reset.status_code == 200

    deleted = client.delete(f"/api/users/{user_id}")
    assert deleted.get_json() == {"message": "User deleted successfully."}

    with app.app_context():
        assert db.session.get(User, user_id) is None
        tribute = db.session.execute(
            db.select(Tribute).where(Tribute.user_id == other_id)
        ).scalar_one()
        assert tribute.candle_count == 0
        assert db.session.execute(db.select(Candle)).scalars().all() == []


def _create_other_with_candle(app, make_user, lighter_id: int) -> int:
    other_id = make_user("bob")
    tribute_id = _create_tribute(app, other_id, "Bob's tribute")
    with app.app_context():
        tributes.toggle_candle(db.session.get(User, lighter_id), tribute_id)
    return other_id


# -- input coercion -----------------------------------------------------------


def test_numeric_tribute_content_is_read_as_text(client, make_user, login) -> None:
    make_user("alice")
    login("alice")

    response = client.post("/api/tributes", json={"content": 12345})

    assert response.status_code == 201
    assert response.get_json()["content"] == "12345"


def test_non_text_json_values_are_validation_errors(client, make_user, login) -> None:
    make_user("root", admin=True)

    register = client.post(
        "/api/register",
        json={"username": {"first": "alice"}, "password": PASSWORD, "name": "Alice"},
    )
    assert register.status_code == 400
    assert "username" in register.get_json()["details"]

    login("root")
    tribute = client.post("/api/tributes", json={"content": {"text": "hello"}})
    assert tribute.status_code == 400
    assert tribute.get_json()["error"] == "validation_error"

    gallery = client.post(
        "/api/gallery",
        json={"image_url": "https://example.com/1.jpg", "display_order": {"n": 1}},
    )
    assert gallery.status_code == 400
    assert "display_order" in gallery.get_json()["details"]

    program = client.put("/api/funeral-program", json={"location": {"hall": 1}})
    assert program.status_code == 400
    assert "location" in program.get_json()["details"]


def test_role_change_rejects_ambiguous_flags(client, app, make_user, login) -> None:
    make_user("root", admin=True)
    user_id = make_user("alice")
    login("root")

    for falsy in ("0", "no", "off", "false"):
        response = client.put(f"/api/users/{user_id}/role", data={"is_admin": falsy})
        assert response.status_code == 200
        assert response.get_json()["is_admin"] is False

    json_no = client.put(f"/api/users/{user_id}/role", json={"is_admin": "no"})
    assert json_no.get_json()["is_admin"] is False

    for unclear in ("maybe", "NO", "2"):
        response = client.put(f"/api/users/{user_id}/role", data={"is_admin": unclear})
        assert response.status_code == 400

    with app.app_context():
        assert db.session.get(User, user_id).is_admin is False


def test_admin_routes_check_role_before_existence(client, make_user, login) -> None:
    make_user("alice")
    login("alice")

    response = client.delete("/api/gallery/9999")

    assert response.status_code == 403
