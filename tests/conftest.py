"""
Shared fixtures for the transfer engine tests.

The blog fixtures model a small relation graph:

    Post --(postId)--> Comment --(commentId)--> Like
    Post --(tagIds)--> Tag
"""

import pytest

from transfer_core.storage.backends.memory import InMemoryStorage
from transfer_core.transfer.collection import Collection
from transfer_core.transfer.registry import CollectionRegistry
from transfer_core.transfer.relations import RelationDescriptor


POSTS = [
    {"id": 1, "title": "First", "tagIds": [5, 6]},
    {"id": 2, "title": "Second", "tagIds": [6]},
    {"id": 3, "title": "Draft", "tagIds": None},
]

COMMENTS = [
    {"id": 10, "postId": 1, "text": "Nice"},
    {"id": 11, "postId": 2, "text": "Meh"},
    {"id": 12, "postId": 3, "text": "Early"},
]

LIKES = [
    {"id": 100, "commentId": 10},
    {"id": 101, "commentId": 10},
    {"id": 102, "commentId": 11},
]

TAGS = [
    {"id": 5, "label": "python"},
    {"id": 6, "label": "async"},
    {"id": 7, "label": "unused"},
]


async def seed(storage, data):
    """Create committed records, ``data`` maps collection name to records."""
    for name, records in data.items():
        await storage.create(name, [dict(record) for record in records])


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def post_comment_registry(storage):
    """Post -> Comment via postId, both leaves otherwise."""
    return CollectionRegistry(
        [
            Collection(
                "Post",
                storage,
                export_with=[RelationDescriptor("Comment", foreign_field="postId")],
            ),
            Collection("Comment", storage),
        ]
    )


@pytest.fixture
def blog_registry(storage):
    """Three-level graph with a foreign-key and a local-array relation."""
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
            Collection(
                "Comment",
                storage,
                export_with=[RelationDescriptor("Like", foreign_field="commentId")],
            ),
            Collection("Like", storage),
            Collection("Tag", storage),
        ]
    )


@pytest.fixture
def blog_data():
    return {"Post": POSTS, "Comment": COMMENTS, "Like": LIKES, "Tag": TAGS}


@pytest.fixture
def seed_records():
    """The ``seed`` coroutine function, for use inside async tests."""
    return seed
