"""
Field catalog: capabilities, validation, preparation and output.
"""

import base64

import pytest

from cairn.faults import ValidationFault
from cairn.fields import (
    CAPABILITIES,
    File,
    FieldKind,
    Password,
    Relationship,
    Select,
    Text,
)


def _bound(field, name="field", list_key="Thing"):
    field.bind(name, list_key)
    return field


class RecordingAdapter:
    def __init__(self):
        self.saved = []

    async def save(self, filename, content, mimetype=None):
        self.saved.append((filename, content, mimetype))
        return {"id": "f1", "filename": f"f1-{filename}"}

    def public_url(self, stored):
        return f"/files/{stored['filename']}"

    async def delete(self, stored):
        pass


# ============================================================================
# Capabilities
# ============================================================================

class TestCapabilities:

    def test_every_kind_has_capabilities(self):
        assert set(CAPABILITIES) == set(FieldKind)

    def test_password_is_never_readable(self):
        assert CAPABILITIES[FieldKind.PASSWORD].readable is False
        assert CAPABILITIES[FieldKind.PASSWORD].queryable is False

    def test_files_are_not_queryable(self):
        assert CAPABILITIES[FieldKind.FILE].queryable is False
        assert CAPABILITIES[FieldKind.CLOUDINARY_IMAGE].queryable is False

    def test_bind_sets_default_label(self):
        field = _bound(Text(), name="twitterUsername")
        assert field.label == "TwitterUsername"
        assert field.list_key == "Thing"


# ============================================================================
# Text / Select
# ============================================================================

class TestText:

    def test_accepts_strings_and_none(self):
        field = _bound(Text())
        field.validate("hello")
        field.validate(None)

    def test_rejects_other_types(self):
        field = _bound(Text(), name="name")
        with pytest.raises(ValidationFault) as exc:
            field.validate(42)
        assert exc.value.field == "name"


class TestSelect:

    def test_string_options_get_labels(self):
        field = Select(options=["draft", "published"])
        assert field.options[0] == {"label": "Draft", "value": "draft"}
        assert field.values == ["draft", "published"]

    def test_rejects_unknown_value(self):
        field = _bound(Select(options=["draft", "published"]), name="status")
        with pytest.raises(ValidationFault):
            field.validate("archived")

    def test_default_must_be_an_option(self):
        with pytest.raises(ValueError):
            Select(options=["draft"], default="published")


# ============================================================================
# Password
# ============================================================================

class TestPassword:

    def test_min_length(self):
        field = _bound(Password(), name="password")
        with pytest.raises(ValidationFault):
            field.validate("short")
        field.validate("long enough")

    @pytest.mark.asyncio
    async def test_prepare_hashes(self, fast_hasher):
        field = _bound(Password())
        stored = await field.prepare("correcthorse")
        assert stored != "correcthorse"
        assert fast_hasher.verify(stored, "correcthorse")

    def test_serialize_hides_hash(self):
        assert Password().serialize("$argon2id$...") is None


# ============================================================================
# Relationship
# ============================================================================

class TestRelationship:

    def test_single_expects_id(self):
        field = _bound(Relationship(ref="User"), name="author")
        field.validate("u1")
        with pytest.raises(ValidationFault):
            field.validate(["u1"])

    def test_many_expects_id_list(self):
        field = _bound(Relationship(ref="Note", many=True), name="notes")
        field.validate(["n1", "n2"])
        with pytest.raises(ValidationFault):
            field.validate("n1")

    def test_ids(self):
        assert Relationship(ref="User").ids("u1") == ["u1"]
        assert Relationship(ref="Note", many=True).ids(["a", "b"]) == ["a", "b"]
        assert Relationship(ref="User").ids(None) == []

    @pytest.mark.asyncio
    async def test_many_prepare_deduplicates(self):
        field = _bound(Relationship(ref="Note", many=True))
        assert await field.prepare(["a", "b", "a"]) == ["a", "b"]


# ============================================================================
# File
# ============================================================================

class TestFile:

    def test_requires_filename_and_content(self):
        field = _bound(File(adapter=RecordingAdapter()), name="attachment")
        with pytest.raises(ValidationFault):
            field.validate({"content": "aGk="})
        with pytest.raises(ValidationFault):
            field.validate({"filename": "a.txt"})
        with pytest.raises(ValidationFault):
            field.validate("a.txt")

    @pytest.mark.asyncio
    async def test_prepare_decodes_and_saves(self):
        adapter = RecordingAdapter()
        field = _bound(File(adapter=adapter))
        stored = await field.prepare({
            "filename": "a.txt",
            "content": base64.b64encode(b"hello").decode(),
            "mimetype": "text/plain",
        })
        assert adapter.saved == [("a.txt", b"hello", "text/plain")]
        assert stored["filename"] == "f1-a.txt"

    @pytest.mark.asyncio
    async def test_raw_bytes_saved_as_is(self):
        adapter = RecordingAdapter()
        field = _bound(File(adapter=adapter))
        await field.prepare({"filename": "a.bin", "content": b"\x00\x01", "mimetype": None})
        assert adapter.saved == [("a.bin", b"\x00\x01", None)]

    @pytest.mark.asyncio
    async def test_invalid_base64(self):
        field = _bound(File(adapter=RecordingAdapter()))
        with pytest.raises(ValidationFault):
            await field.prepare({"filename": "a.txt", "content": "not base64!"})

    def test_serialize_adds_public_url(self):
        field = File(adapter=RecordingAdapter())
        out = field.serialize({"id": "f1", "filename": "f1-a.txt"})
        assert out["publicUrl"] == "/files/f1-a.txt"
        assert field.serialize(None) is None
