"""
Seeding: where-reference resolution and the empty-store bootstrap.
"""

import logging

import pytest

from cairn.faults import ValidationFault
from cairn_site.data import initial_data


class TestCreateItems:

    @pytest.mark.asyncio
    async def test_counts(self, cairn):
        await cairn.connect()
        created = await cairn.create_items(initial_data)
        assert {key: len(items) for key, items in created.items()} == {
            "User": 4,
            "PostCategory": 3,
            "Post": 4,
            "Note": 3,
        }
        for key, expected in (("User", 4), ("PostCategory", 3), ("Post", 4), ("Note", 3)):
            assert await cairn.lists[key].count() == expected
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_references_resolved(self, cairn):
        await cairn.connect()
        await cairn.create_items(initial_data)

        [jed] = await cairn.lists["User"].find_raw({"email": "jed@keystone.project"})
        [post] = await cairn.lists["Post"].find_raw({"slug": "declaring-your-first-list"})
        categories = await cairn.lists["PostCategory"].find_raw()
        by_slug = {c["slug"]: c["id"] for c in categories}

        assert post["categories"] == [by_slug["tutorials"], by_slug["community"]]
        notes = await cairn.lists["Note"].find_raw({"user": jed["id"]})
        assert sorted(jed["notes"]) == sorted(n["id"] for n in notes)
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_passwords_hashed(self, cairn, fast_hasher):
        await cairn.connect()
        created = await cairn.create_items(initial_data)
        for user in created["User"]:
            assert user["password"].startswith("$argon2id$")
            assert fast_hasher.verify(user["password"], "correcthorse")
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_default_status(self, cairn):
        await cairn.connect()
        await cairn.create_items(initial_data)
        drafts = await cairn.lists["Post"].find_raw({"status": "draft"})
        assert {p["slug"] for p in drafts} == {"access-control-in-depth", "meetup-recap"}
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_unresolvable_reference(self, cairn):
        await cairn.connect()
        with pytest.raises(ValidationFault):
            await cairn.create_items({
                "Note": [{"note": "orphan", "user": {"where": {"email": "ghost@keystone.project"}}}],
            })
        await cairn.disconnect()


class TestBootstrap:

    @pytest.mark.asyncio
    async def test_seeds_empty_store(self, cairn, caplog):
        await cairn.connect()
        with caplog.at_level(logging.INFO):
            assert await cairn.bootstrap(initial_data) is True
        assert await cairn.lists["User"].count() == 4
        assert "seeding initial data" in caplog.text
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_noop_when_users_exist(self, cairn):
        await cairn.connect()
        await cairn.lists["User"].insert_raw({"name": "Only"})
        await cairn.lists["PostCategory"].insert_raw({"name": "Kept"})

        assert await cairn.bootstrap(initial_data) is False
        assert await cairn.lists["User"].count() == 1
        assert await cairn.lists["PostCategory"].count() == 1
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_drops_leftovers_before_seeding(self, cairn):
        await cairn.connect()
        await cairn.lists["PostCategory"].insert_raw({"name": "Leftover"})

        assert await cairn.bootstrap(initial_data) is True
        names = {c["name"] for c in await cairn.lists["PostCategory"].find_raw()}
        assert "Leftover" not in names
        await cairn.disconnect()

    @pytest.mark.asyncio
    async def test_app_startup_seeds(self, app, site_client):
        async with site_client() as client:
            response = await client.get("/admin/api/User")
        assert response.json()["count"] == 4
