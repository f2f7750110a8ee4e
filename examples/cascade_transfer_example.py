"""
Cascade Transfer Example

This example exports a small blog graph (posts, their comments, the likes of
those comments and the tags of the posts) from one storage backend into a
single archive, then imports the archive into another backend.
"""

import asyncio
import tempfile
from pathlib import Path

from transfer_core.storage import create_storage
from transfer_core.transfer import (
    Collection,
    CollectionRegistry,
    RelationDescriptor,
    TransferError,
    TransferService,
)


def build_registry(storage):
    """Declare the collections of the blog graph against one storage."""
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


async def seed(storage):
    await storage.create("Post", [{"id": 1, "title": "Hello", "tagIds": [5]}, {"id": 2, "title": "Draft"}])
    await storage.create("Comment", [{"id": 10, "postId": 1, "text": "Nice post"}])
    await storage.create("Like", [{"id": 100, "commentId": 10}, {"id": 101, "commentId": 10}])
    await storage.create("Tag", [{"id": 5, "label": "python"}, {"id": 6, "label": "unused"}])


async def main():
    print(f"\n{'='*60}")
    print("📦 Cascade Transfer Example")
    print(f"{'='*60}")

    source = create_storage(backend_type="memory")
    await source.connect()
    await seed(source)

    with tempfile.TemporaryDirectory() as temp_dir:
        target = create_storage(
            backend_type="sqlite", config_override={"database_path": str(Path(temp_dir) / "blog.db")}
        )
        await target.connect()

        try:
            exported = await TransferService(build_registry(source)).export_proxy(
                "Post", {"where": {"id": 1}}, context={"request_id": "example-export"}
            )
            print(f"✅ Exported {exported.metadata.filename} ({exported.metadata.content_length} bytes)")
            for name, value in exported.metadata.headers.items():
                print(f"   {name}: {value}")

            result = await TransferService(build_registry(target)).import_proxy(
                "Post", exported.data, context={"request_id": "example-import"}
            )
            print(
                f"✅ Imported {result.entries_imported} entries, "
                f"{result.records_created} records (transactional: {result.transactional})"
            )

            for name in ("Post", "Comment", "Like", "Tag"):
                records = await target.find(name)
                print(f"   {name}: {[record['id'] for record in records]}")

        except TransferError as e:
            print(f"❌ Transfer failed: {e}")
        finally:
            await target.close()
            await source.close()


if __name__ == "__main__":
    asyncio.run(main())
