"""
Tests for the export_proxy / import_proxy entry points.
"""
import io
import json
import tempfile
from email.utils import parsedate_to_datetime
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from transfer_core.storage.backends.memory import InMemoryStorage
from transfer_core.transfer.archive import Archive
from transfer_core.transfer.collection import Collection
from transfer_core.transfer.exceptions import CreateError, ParseError, UnknownCollection
from transfer_core.transfer.registry import CollectionRegistry
from transfer_core.transfer.relations import RelationDescriptor
from transfer_core.transfer.service import TransferService, read_source


def _archive(*entries):
    archive = Archive()
    for name, payload in entries:
        archive.add_entry(name, payload)
    return archive.seal().to_bytes()


class TestExportProxy:
    """Export responses and download metadata."""

    @pytest.mark.asyncio
    async def test_zip_metadata(self, storage, seed_records, post_comment_registry):
        await seed_records(storage, {"Post": [{"id": 1}], "Comment": [{"id": 10, "postId": 1}]})
        service = TransferService(post_comment_registry)

        response = await service.export_proxy("Post", {"where": {"id": 1}})

        metadata = response.metadata
        assert metadata.filename == "Post.zip"
        assert metadata.content_type == "application/zip"
        assert metadata.content_length == len(response.data)
        assert metadata.headers["Content-Disposition"] == "attachment; filename=Post.zip"
        assert metadata.headers["Content-Type"] == "application/zip"
        assert metadata.headers["Content-Length"] == str(len(response.data))
        assert metadata.headers["Content-Transfer-Encoding"] == "binary"
        assert metadata.headers["Cache-Control"] == (
            "max-age=0, no-cache, must-revalidate, proxy-revalidate"
        )
        assert parsedate_to_datetime(metadata.headers["Last-Modified"]) is not None

    @pytest.mark.asyncio
    async def test_json_metadata(self, storage, seed_records):
        await seed_records(storage, {"Note": [{"id": 1}]})
        service = TransferService(CollectionRegistry([Collection("Note", storage)]))

        response = await service.export_proxy("Note")

        assert response.metadata.filename == "Note.json"
        assert response.metadata.content_type == "application/json"
        assert "Content-Transfer-Encoding" not in response.metadata.headers
        assert json.loads(response.data) == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_csv_metadata(self, storage):
        note = Collection("Note", storage, export_format="csv")
        service = TransferService(CollectionRegistry([note]))

        response = await service.export_proxy(note)

        assert response.metadata.filename == "Note.csv"
        assert response.metadata.content_type == "application/octet-stream"
        assert response.metadata.headers["Content-Transfer-Encoding"] == "binary"

    @pytest.mark.asyncio
    async def test_unknown_collection_name(self, post_comment_registry):
        service = TransferService(post_comment_registry)

        with pytest.raises(UnknownCollection):
            await service.export_proxy("Ghost")


class TestImportProxy:
    """Transactional import."""

    @pytest.mark.asyncio
    async def test_export_import_round_trip(self, seed_records, blog_data):
        source = InMemoryStorage()
        target = InMemoryStorage()
        await seed_records(source, blog_data)

        def registry(storage):
            return CollectionRegistry(
                [
                    Collection(
                        "Post",
                        storage,
                        export_with=[
                            RelationDescriptor("Comment", foreign_field="postId"),
                            RelationDescriptor("Tag", local_field="tagIds"),
                        ],
                    ),
                    Collection("Comment", storage, export_with=[RelationDescriptor("Like", foreign_field="commentId")]),
                    Collection("Like", storage),
                    Collection("Tag", storage),
                ]
            )

        exported = await TransferService(registry(source)).export_proxy("Post")
        result = await TransferService(registry(target)).import_proxy("Post", exported.data)

        assert result.transactional
        assert result.warnings == []
        assert result.entries_imported == 4
        assert result.records_created == 11
        for name, records in blog_data.items():
            expected = [r["id"] for r in records]
            if name == "Tag":
                expected = [5, 6]
            assert [r["id"] for r in await target.find(name)] == expected

    @pytest.mark.asyncio
    async def test_failure_in_third_of_four_entries_commits_nothing(self, storage):
        registry = CollectionRegistry(
            [
                Collection(
                    "Post",
                    storage,
                    export_with=[
                        RelationDescriptor("Comment", foreign_field="postId"),
                        RelationDescriptor("Tag", local_field="tagIds"),
                        RelationDescriptor("Author", local_field="authorId"),
                    ],
                ),
                Collection("Comment", storage),
                Collection("Tag", storage),
                Collection("Author", storage),
            ]
        )
        data = _archive(
            ("Post.json", b'[{"id": 1}]'),
            ("Comment.json", b'[{"id": 10, "postId": 1}]'),
            ("Tag.json", b'[{"id": 5}, {"id": '),
            ("Author.json", b'[{"id": 3}]'),
        )

        with pytest.raises(ParseError) as exc_info:
            await TransferService(registry).import_proxy("Post", data)

        assert exc_info.value.collection == "Tag"
        for name in ("Post", "Comment", "Tag", "Author"):
            assert await storage.find(name) == []

    @pytest.mark.asyncio
    async def test_nested_failure_rolls_back_every_level(self, storage, blog_registry):
        nested = _archive(
            ("Comment.json", b'[{"id": 10, "postId": 1}]'),
            ("Like.json", b'[{"id": 100, "commentId": 10}, {"id": 100, "commentId": 10}]'),
        )
        data = _archive(
            ("Post.json", b'[{"id": 1}]'),
            ("Comment.zip", nested),
            ("Tag.json", b'[{"id": 5}]'),
        )

        with pytest.raises(CreateError):
            await TransferService(blog_registry).import_proxy("Post", data)

        for name in ("Post", "Comment", "Like", "Tag"):
            assert storage.count(name) == 0

    @pytest.mark.asyncio
    async def test_commit_and_rollback_happen_once(self, storage, post_comment_registry):
        tx = await storage.begin_transaction()
        tx.commit = AsyncMock(wraps=tx.commit)
        tx.rollback = AsyncMock(wraps=tx.rollback)
        data = _archive(("Post.json", b'[{"id": 1}]'), ("Comment.json", b"[]"))

        with patch.object(storage, "begin_transaction", AsyncMock(return_value=tx)):
            await TransferService(post_comment_registry).import_proxy("Post", data)

        tx.commit.assert_awaited_once()
        tx.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_rolls_back_once(self, storage, post_comment_registry):
        tx = await storage.begin_transaction()
        tx.commit = AsyncMock(wraps=tx.commit)
        tx.rollback = AsyncMock(wraps=tx.rollback)
        data = _archive(("Post.json", b'[{"id": 1}]'), ("Comment.json", b"{{"))

        with patch.object(storage, "begin_transaction", AsyncMock(return_value=tx)):
            with pytest.raises(ParseError):
                await TransferService(post_comment_registry).import_proxy("Post", data)

        tx.commit.assert_not_awaited()
        tx.rollback.assert_awaited_once()
        assert not tx.active

    @pytest.mark.asyncio
    async def test_degraded_mode_without_transaction(self, post_comment_registry):
        storage = post_comment_registry.lookup("Post").storage
        storage.fail_transactions = True
        data = _archive(("Post.json", b'[{"id": 1}]'), ("Comment.json", b'[{"id": 10, "postId": 1}]'))

        result = await TransferService(post_comment_registry).import_proxy("Post", data)

        assert not result.transactional
        assert len(result.warnings) == 1
        assert "without a transaction" in result.warnings[0]
        assert await storage.find("Post") == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_hidden_entries_import_cleanly(self, storage, post_comment_registry):
        data = _archive((".DS_Store", b"\x00"), ("__MACOSX/._Post.json", b"x"), ("Post.json", b"[]"))

        result = await TransferService(post_comment_registry).import_proxy("Post", data)

        assert result.records_created == 0
        assert storage.count("Post") == 0

    @pytest.mark.asyncio
    async def test_context_is_accepted(self, storage, post_comment_registry):
        data = _archive(("Post.json", b'[{"id": 2}]'))

        result = await TransferService(post_comment_registry).import_proxy(
            "Post", data, context={"request_id": "req-1", "user_id": "u-1"}
        )

        assert result.collection == "Post"
        assert result.duration >= 0


class TestReadSource:
    """Import sources are read completely before importing."""

    @pytest.mark.asyncio
    async def test_bytes(self):
        assert await read_source(bytearray(b"abc")) == b"abc"

    @pytest.mark.asyncio
    async def test_path(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "Post.zip"
            path.write_bytes(b"payload")

            assert await read_source(path) == b"payload"
            assert await read_source(str(path)) == b"payload"

    @pytest.mark.asyncio
    async def test_file_object(self):
        assert await read_source(io.BytesIO(b"payload")) == b"payload"

    @pytest.mark.asyncio
    async def test_async_iterator(self):
        async def chunks():
            yield b"pay"
            yield b"load"

        assert await read_source(chunks()) == b"payload"

    @pytest.mark.asyncio
    async def test_unsupported_source(self):
        with pytest.raises(TypeError):
            await read_source(42)
