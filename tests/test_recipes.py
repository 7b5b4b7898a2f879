from pathlib import Path

from fastapi.testclient import TestClient

from app import models
from app.core.config import settings


def create_recipe(client: TestClient, headers, title="Apple Pie", prep_time="45 min", **kwargs):
    response = client.post(
        "/api/recipes",
        data={"title": title, "prepTime": prep_time, **kwargs.pop("data", {})},
        headers=headers,
        **kwargs,
    )
    assert response.status_code == 201, response.json()
    return response.json()


def profile(client: TestClient, headers):
    return client.get("/api/users/me", headers=headers).json()


def test_create_recipe_with_image(client: TestClient, register):
    user_id, headers = register(name="Alice")
    recipe = create_recipe(
        client,
        headers,
        files={"image": ("pie.png", b"\x89PNG fake image", "image/png")},
    )

    assert recipe["title"] == "Apple Pie"
    assert recipe["prepTime"] == "45 min"
    assert recipe["likes"] == []
    assert recipe["reshares"] == []
    assert recipe["createdBy"] == {"id": user_id, "name": "Alice"}
    assert recipe["image"].startswith("/uploads/images/image-")
    assert recipe["image"].endswith(".png")

    stored = Path(settings.UPLOAD_DIR) / "images" / recipe["image"].rsplit("/", 1)[1]
    assert stored.read_bytes() == b"\x89PNG fake image"

    # And it is served back statically
    response = client.get(recipe["image"])
    assert response.status_code == 200
    assert response.content == b"\x89PNG fake image"


def test_create_recipe_without_image(client: TestClient, register):
    _, headers = register()
    recipe = create_recipe(client, headers)
    assert recipe["image"] == ""


def test_create_recipe_with_external_url(client: TestClient, register):
    _, headers = register()
    recipe = create_recipe(client, headers, data={"externalURL": "https://example.com/pie"})
    assert recipe["image"] == "https://example.com/pie"


def test_create_recipe_external_url_must_be_http(client: TestClient, register):
    _, headers = register()
    response = client.post(
        "/api/recipes",
        data={"title": "Pie", "prepTime": "5 min", "externalURL": "ftp://example.com/pie.png"},
        headers=headers,
    )
    assert response.status_code == 400


def test_create_recipe_rejects_video(client: TestClient, register):
    _, headers = register()
    response = client.post(
        "/api/recipes",
        data={"title": "Clip", "prepTime": "5 min"},
        files={"image": ("clip.mp4", b"video", "video/mp4")},
        headers=headers,
    )
    assert response.status_code == 400


def test_create_recipe_rejects_file_and_url(client: TestClient, register):
    _, headers = register()
    response = client.post(
        "/api/recipes",
        data={"title": "Both", "prepTime": "5 min", "externalURL": "https://example.com/a.png"},
        files={"image": ("a.png", b"img", "image/png")},
        headers=headers,
    )
    assert response.status_code == 400


def test_create_recipe_requires_fields(client: TestClient, register):
    _, headers = register()
    response = client.post("/api/recipes", data={"title": "No time"}, headers=headers)
    assert response.status_code == 400


def test_create_recipe_requires_auth(client: TestClient):
    response = client.post("/api/recipes", data={"title": "Pie", "prepTime": "1h"})
    assert response.status_code == 401


def test_list_recipes_public_and_user_scoped(client: TestClient, register):
    alice_id, alice = register(name="Alice")
    _, bob = register(name="Bob")
    create_recipe(client, alice, title="Soup")
    create_recipe(client, bob, title="Bread")

    response = client.get("/api/recipes")
    assert response.status_code == 200
    assert {r["title"] for r in response.json()} == {"Soup", "Bread"}

    response = client.get("/api/recipes/user", headers=alice)
    assert response.status_code == 200
    mine = response.json()
    assert [r["title"] for r in mine] == ["Soup"]
    assert mine[0]["createdBy"]["id"] == alice_id


def test_delete_recipe(client: TestClient, register, db):
    _, headers = register()
    recipe = create_recipe(client, headers)

    response = client.delete(f"/api/recipes/{recipe['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Recipe deleted"}
    assert client.get("/api/recipes").json() == []
    assert profile(client, headers)["postedRecipes"] == 0


def test_delete_recipe_not_owner(client: TestClient, register):
    _, alice = register(name="Alice")
    _, bob = register(name="Bob")
    recipe = create_recipe(client, alice)

    response = client.delete(f"/api/recipes/{recipe['id']}", headers=bob)
    assert response.status_code == 403
    assert len(client.get("/api/recipes").json()) == 1


def test_delete_recipe_not_found(client: TestClient, register):
    _, headers = register()
    response = client.delete("/api/recipes/00000000-0000-0000-0000-000000000000", headers=headers)
    assert response.status_code == 404


def test_rank_progression(client: TestClient, register):
    _, headers = register(name="Alice")
    assert profile(client, headers)["rank"] == "Beginner"

    created = [create_recipe(client, headers, title=f"Dish {i}") for i in range(6)]
    me = profile(client, headers)
    assert me["postedRecipes"] == 6
    assert me["rank"] == "Professional Chef"

    client.delete(f"/api/recipes/{created[0]['id']}", headers=headers)
    me = profile(client, headers)
    assert me["postedRecipes"] == 5
    assert me["rank"] == "Pro"


# ---------------------------------------------------------------------------
# Likes and reshares
# ---------------------------------------------------------------------------


def test_like_toggle_notifies_owner_once(client: TestClient, register, events, db):
    alice_id, alice = register(name="Alice")
    bob_id, bob = register(name="Bob")
    recipe = create_recipe(client, alice, title="Tart")

    response = client.post(f"/api/recipes/{recipe['id']}/like", headers=bob)
    assert response.status_code == 200
    assert response.json()["likes"] == [bob_id]
    assert response.json()["createdBy"]["name"] == "Alice"

    notifications = events.named("newNotification")
    assert len(notifications) == 1
    payload, room = notifications[0]
    assert str(room) == alice_id
    assert payload["message"] == 'Bob liked your recipe: "Tart"'
    assert db.query(models.Notification).count() == 1
    assert profile(client, bob)["likedRecipes"] == 1

    # Second like removes it again, without a new notification
    response = client.post(f"/api/recipes/{recipe['id']}/like", headers=bob)
    assert response.json()["likes"] == []
    assert len(events.named("newNotification")) == 1
    assert db.query(models.Notification).count() == 1
    assert db.query(models.RecipeLike).count() == 0
    assert profile(client, bob)["likedRecipes"] == 0

    updates = events.named("recipeUpdated")
    assert len(updates) == 2
    assert all(room is None for _, room in updates)


def test_owner_like_does_not_notify(client: TestClient, register, events):
    alice_id, alice = register(name="Alice")
    recipe = create_recipe(client, alice)

    response = client.post(f"/api/recipes/{recipe['id']}/like", headers=alice)
    assert response.json()["likes"] == [alice_id]
    assert events.named("newNotification") == []
    assert len(events.named("recipeUpdated")) == 1


def test_reshare_toggle(client: TestClient, register, events):
    alice_id, alice = register(name="Alice")
    bob_id, bob = register(name="Bob")
    recipe = create_recipe(client, alice, title="Stew")

    response = client.post(f"/api/recipes/{recipe['id']}/reshare", headers=bob)
    assert response.status_code == 200
    assert response.json()["reshares"] == [bob_id]
    assert response.json()["likes"] == []
    payload, room = events.named("newNotification")[0]
    assert payload["message"] == 'Bob reshared your recipe: "Stew"'
    assert str(room) == alice_id
    # Resharing is not liking
    assert profile(client, bob)["likedRecipes"] == 0

    response = client.post(f"/api/recipes/{recipe['id']}/reshare", headers=bob)
    assert response.json()["reshares"] == []


def test_like_missing_recipe(client: TestClient, register):
    _, headers = register()
    response = client.post("/api/recipes/00000000-0000-0000-0000-000000000000/like", headers=headers)
    assert response.status_code == 404


def test_delete_liked_recipe_removes_memberships(client: TestClient, register, db):
    _, alice = register(name="Alice")
    _, bob = register(name="Bob")
    recipe = create_recipe(client, alice)
    client.post(f"/api/recipes/{recipe['id']}/like", headers=bob)
    client.post(f"/api/recipes/{recipe['id']}/reshare", headers=bob)

    response = client.delete(f"/api/recipes/{recipe['id']}", headers=alice)
    assert response.status_code == 200
    assert db.query(models.RecipeLike).count() == 0
    assert db.query(models.RecipeReshare).count() == 0
    assert profile(client, bob)["likedRecipes"] == 0
