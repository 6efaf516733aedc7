"""
List operations under access control, against the site's lists.
"""

import base64
from pathlib import Path

import pytest

from cairn import Authentication, Cairn, SQLiteItemStore
from cairn.faults import (
    AccessDeniedFault,
    FileStorageFault,
    ItemNotFoundFault,
    ListConfigFault,
    ValidationFault,
)
from cairn.fields import Text
from cairn_site.data import initial_data


async def _seeded(cairn):
    await cairn.connect()
    await cairn.create_items(initial_data)
    return cairn


async def _auth_for(cairn, email):
    [user] = await cairn.lists["User"].find_raw({"email": email})
    return Authentication("User", user)


ANON = Authentication.anonymous()


# ============================================================================
# Declaration
# ============================================================================

class TestDeclaration:

    def test_reserved_field_names(self):
        cairn = Cairn("t", SQLiteItemStore())
        with pytest.raises(ListConfigFault):
            cairn.create_list("Thing", {"id": Text()})
        with pytest.raises(ListConfigFault):
            cairn.create_list("Thing", {"_label_": Text()})

    def test_duplicate_list(self):
        cairn = Cairn("t", SQLiteItemStore())
        cairn.create_list("Thing", {"name": Text()})
        with pytest.raises(ListConfigFault):
            cairn.create_list("Thing", {"name": Text()})

    def test_site_lists(self, cairn):
        assert list(cairn.lists) == ["User", "Post", "PostCategory", "Note"]
        # no Cloudinary credentials in the test config
        assert "avatar" not in cairn.lists["User"].fields


# ============================================================================
# Reading
# ============================================================================

class TestRead:

    @pytest.mark.asyncio
    async def test_user_output_hides_email_and_password(self, cairn):
        await _seeded(cairn)
        users = await cairn.lists["User"].list_items(ANON)
        assert len(users) == 4
        for user in users:
            assert "email" not in user
            assert "password" not in user
            assert "<" not in user["_label_"]
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_output_shape(self, cairn):
        await _seeded(cairn)
        [post] = await cairn.lists["Post"].list_items(ANON, where={"slug": "hello-world"})
        assert post["_label_"] == "Hello World"
        assert post["status"] == "published"
        assert set(post) >= {"id", "_label_", "name", "slug", "author", "categories"}
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_filter_by_many_relationship(self, cairn):
        await _seeded(cairn)
        [tutorials] = await cairn.lists["PostCategory"].find_raw({"slug": "tutorials"})
        posts = await cairn.lists["Post"].list_items(ANON, where={"categories": tutorials["id"]})
        assert {p["slug"] for p in posts} == {"declaring-your-first-list", "access-control-in-depth"}
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_filter_on_unreadable_field_rejected(self, cairn):
        await _seeded(cairn)
        with pytest.raises(ValidationFault):
            await cairn.lists["User"].list_items(ANON, where={"email": "jed@keystone.project"})
        with pytest.raises(ValidationFault):
            await cairn.lists["User"].list_items(ANON, where={"password": "x"})
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_filter_on_unknown_field_rejected(self, cairn):
        await _seeded(cairn)
        with pytest.raises(ValidationFault):
            await cairn.lists["Post"].list_items(ANON, where={"title": "x"})
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_private_notes(self, cairn):
        await _seeded(cairn)
        notes = cairn.lists["Note"]
        assert await notes.list_items(ANON) == []

        jed = await _auth_for(cairn, "jed@keystone.project")
        mine = await notes.list_items(jed)
        assert len(mine) == 2
        assert all(n["user"] == jed.item_id for n in mine)

        boris = await _auth_for(cairn, "boris@keystone.project")
        with pytest.raises(ItemNotFoundFault):
            await notes.get_item(mine[0]["id"], boris)
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_missing_and_hidden_look_the_same(self, cairn):
        await _seeded(cairn)
        jed = await _auth_for(cairn, "jed@keystone.project")
        [note] = (await cairn.lists["Note"].list_items(jed))[:1]

        with pytest.raises(ItemNotFoundFault) as hidden:
            await cairn.lists["Note"].get_item(note["id"], ANON)
        with pytest.raises(ItemNotFoundFault) as missing:
            await cairn.lists["Note"].get_item("nope", ANON)
        assert hidden.value.message == missing.value.message
        await cairn.disconnect()


# ============================================================================
# Writing
# ============================================================================

class TestWrite:

    @pytest.mark.asyncio
    async def test_anonymous_cannot_create_post(self, cairn):
        await _seeded(cairn)
        with pytest.raises(AccessDeniedFault):
            await cairn.lists["Post"].create_item({"name": "Spam"}, ANON)
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_author_creates_own_post_with_default_status(self, cairn):
        await _seeded(cairn)
        jed = await _auth_for(cairn, "jed@keystone.project")
        post = await cairn.lists["Post"].create_item(
            {"name": "New", "slug": "new", "author": jed.item_id}, jed,
        )
        assert post["status"] == "draft"
        assert post["author"] == jed.item_id
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_cannot_create_post_for_someone_else(self, cairn):
        await _seeded(cairn)
        jed = await _auth_for(cairn, "jed@keystone.project")
        boris = await _auth_for(cairn, "boris@keystone.project")
        with pytest.raises(AccessDeniedFault):
            await cairn.lists["Post"].create_item({"name": "New", "author": boris.item_id}, jed)
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_update_and_delete_owned_post(self, cairn):
        await _seeded(cairn)
        posts = cairn.lists["Post"]
        jed = await _auth_for(cairn, "jed@keystone.project")
        boris = await _auth_for(cairn, "boris@keystone.project")
        [post] = await posts.list_items(ANON, where={"slug": "hello-world"})

        with pytest.raises(ItemNotFoundFault):
            await posts.update_item(post["id"], {"name": "Hijacked"}, boris)

        updated = await posts.update_item(post["id"], {"name": "Hello again"}, jed)
        assert updated["name"] == "Hello again"

        with pytest.raises(ItemNotFoundFault):
            await posts.delete_item(post["id"], ANON)
        deleted = await posts.delete_item(post["id"], jed)
        assert deleted["id"] == post["id"]
        assert await posts.list_items(ANON, where={"id": post["id"]}) == []
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_categories_are_append_only(self, cairn):
        await _seeded(cairn)
        categories = cairn.lists["PostCategory"]
        created = await categories.create_item({"name": "Events", "slug": "events"}, ANON)

        with pytest.raises(ItemNotFoundFault):
            await categories.update_item(created["id"], {"name": "Meetups"}, ANON)
        with pytest.raises(ItemNotFoundFault):
            await categories.delete_item(created["id"], ANON)
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_email_updatable_only_by_self(self, cairn):
        await _seeded(cairn)
        users = cairn.lists["User"]
        jed = await _auth_for(cairn, "jed@keystone.project")
        boris = await _auth_for(cairn, "boris@keystone.project")

        with pytest.raises(ItemNotFoundFault) as denied:
            await users.update_item(jed.item_id, {"email": "evil@example.com"}, boris)
        with pytest.raises(ItemNotFoundFault) as missing:
            await users.update_item("nope", {"email": "evil@example.com"}, boris)
        assert denied.value.message == missing.value.message

        await users.update_item(jed.item_id, {"email": "jed@example.com"}, jed)
        [stored] = await users.find_raw({"id": jed.item_id})
        assert stored["email"] == "jed@example.com"
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_password_update_is_hashed(self, cairn, fast_hasher):
        await _seeded(cairn)
        users = cairn.lists["User"]
        jed = await _auth_for(cairn, "jed@keystone.project")

        out = await users.update_item(jed.item_id, {"password": "battery staple"}, jed)
        assert "password" not in out
        [stored] = await users.find_raw({"id": jed.item_id})
        assert fast_hasher.verify(stored["password"], "battery staple")
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, cairn):
        await _seeded(cairn)
        with pytest.raises(ValidationFault):
            await cairn.lists["PostCategory"].create_item({"name": "x", "colour": "red"}, ANON)
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_dangling_reference_rejected(self, cairn):
        await _seeded(cairn)
        jed = await _auth_for(cairn, "jed@keystone.project")
        with pytest.raises(ValidationFault):
            await cairn.lists["Post"].create_item(
                {"name": "x", "author": jed.item_id, "categories": ["missing"]}, jed,
            )
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_invalid_select_value(self, cairn):
        await _seeded(cairn)
        jed = await _auth_for(cairn, "jed@keystone.project")
        with pytest.raises(ValidationFault):
            await cairn.lists["Post"].create_item(
                {"name": "x", "author": jed.item_id, "status": "archived"}, jed,
            )
        await cairn.disconnect()


# ============================================================================
# Stored files
# ============================================================================

def _upload(name, content=b"hello"):
    return {
        "filename": name,
        "content": base64.b64encode(content).decode(),
        "mimetype": "text/plain",
    }


class TestStoredFiles:

    @pytest.mark.asyncio
    async def test_replaced_upload_is_removed(self, cairn, config):
        await _seeded(cairn)
        users = cairn.lists["User"]
        boris = await _auth_for(cairn, "boris@keystone.project")
        avatars = Path(config.static_path) / "avatars"

        first = await users.update_item(boris.item_id, {"attachment": _upload("a.txt")}, boris)
        second = await users.update_item(boris.item_id, {"attachment": _upload("b.txt")}, boris)

        assert [p.name for p in avatars.iterdir()] == [second["attachment"]["filename"]]
        assert first["attachment"]["filename"] != second["attachment"]["filename"]
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_delete_survives_adapter_failure(self, cairn, monkeypatch, caplog):
        await _seeded(cairn)
        users = cairn.lists["User"]
        boris = await _auth_for(cairn, "boris@keystone.project")
        await users.update_item(boris.item_id, {"attachment": _upload("cv.txt")}, boris)

        async def broken(stored):
            raise FileStorageFault("local", "read-only filesystem")

        monkeypatch.setattr(users.fields["attachment"].adapter, "delete", broken)
        deleted = await users.delete_item(boris.item_id, boris)

        assert deleted["id"] == boris.item_id
        assert await users.find_raw({"id": boris.item_id}) == []
        assert "Could not remove stored file" in caplog.text
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_update_survives_adapter_failure(self, cairn, monkeypatch):
        await _seeded(cairn)
        users = cairn.lists["User"]
        boris = await _auth_for(cairn, "boris@keystone.project")
        await users.update_item(boris.item_id, {"attachment": _upload("a.txt")}, boris)

        async def broken(stored):
            raise FileStorageFault("local", "read-only filesystem")

        monkeypatch.setattr(users.fields["attachment"].adapter, "delete", broken)
        updated = await users.update_item(boris.item_id, {"attachment": _upload("b.txt")}, boris)
        assert updated["attachment"]["originalFilename"] == "b.txt"
        await cairn.disconnect()


# ============================================================================
# Labels
# ============================================================================

class TestLabels:

    def test_default_label_uses_name_then_id(self, cairn):
        categories = cairn.lists["PostCategory"]
        assert categories.label_for({"id": "c1", "name": "Tutorials"}) == "Tutorials"
        assert categories.label_for({"id": "c1"}) == "c1"

    def test_user_label_includes_visible_email(self, cairn):
        users = cairn.lists["User"]
        assert users.label_for({"id": "u1", "name": "Jed", "email": "jed@x"}) == "Jed <jed@x>"
        assert users.label_for({"id": "u1", "name": "Jed"}) == "Jed"
