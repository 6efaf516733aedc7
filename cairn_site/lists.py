"""
Test project lists: User, Post, PostCategory, Note.
"""

from __future__ import annotations

import logging
import os

from cairn import Cairn, CairnConfig, OwnerPolicy
from cairn.adapters import CloudinaryAdapter, LocalFileAdapter
from cairn.faults import AdapterConfigFault
from cairn.fields import CloudinaryImage, File, Password, Relationship, Select, Text

logger = logging.getLogger("cairn_site")

AUTH_LIST = "User"

COMPANY_OPTIONS = [
    {"label": "Thinkmill", "value": "thinkmill"},
    {"label": "Atlassian", "value": "atlassian"},
    {"label": "Thomas Walker Gelato", "value": "gelato"},
    {"label": "Cete, or Seat, or Attend ¯\\_(ツ)_/¯", "value": "cete"},
]

STATUS_OPTIONS = [
    {"label": "Draft", "value": "draft"},
    {"label": "Published", "value": "published"},
]


def user_label(item) -> str:
    if item.get("email"):
        return f"{item.get('name')} <{item['email']}>"
    return str(item.get("name") or item["id"])


def build_cloudinary_adapter(config: CairnConfig):
    """The Cloudinary adapter, or None (with a warning) when unconfigured."""
    try:
        return CloudinaryAdapter(**config.cloudinary, folder="avatars")
    except AdapterConfigFault as e:
        logger.warning("%s; the User avatar field is disabled", e.message)
        return None


def declare_lists(cairn: Cairn, config: CairnConfig) -> None:
    file_adapter = LocalFileAdapter(
        directory=os.path.join(config.static_path, "avatars"),
        route=f"{config.static_route.rstrip('/')}/avatars",
    )
    cloudinary_adapter = build_cloudinary_adapter(config)

    # The item is its own owner: only the signed-in user may change these
    is_self = OwnerPolicy(AUTH_LIST)

    user_fields = {
        # No access declared: follows the list, which is public
        "name": Text(),
        "email": Text(access={"read": False, "update": is_self}),
        "password": Password(access={"update": is_self}),
        "twitterId": Text(),
        "twitterUsername": Text(),
        "company": Select(options=COMPANY_OPTIONS),
        # Note has its own access control
        "notes": Relationship(ref="Note", many=True),
        "attachment": File(adapter=file_adapter),
    }
    if cloudinary_adapter is not None:
        user_fields["avatar"] = CloudinaryImage(adapter=cloudinary_adapter)

    cairn.create_list(AUTH_LIST, user_fields, label_resolver=user_label)

    post_owner = OwnerPolicy(AUTH_LIST, owner_field="author")
    cairn.create_list(
        "Post",
        {
            "name": Text(),
            "slug": Text(),
            "status": Select(options=STATUS_OPTIONS, default="draft"),
            "author": Relationship(ref=AUTH_LIST),
            "categories": Relationship(ref="PostCategory", many=True),
        },
        access={
            "read": True,
            "create": post_owner,
            "update": post_owner,
            "delete": post_owner,
        },
        label_resolver=lambda item: item.get("name") or item["id"],
    )

    cairn.create_list(
        "PostCategory",
        {
            "name": Text(),
            "slug": Text(),
        },
        access={
            "create": True,
            "read": True,
            "update": False,
            "delete": False,
        },
    )

    cairn.create_list(
        "Note",
        {
            "note": Text(),
            "user": Relationship(ref=AUTH_LIST),
        },
        access=OwnerPolicy(AUTH_LIST, owner_field="user"),
    )
