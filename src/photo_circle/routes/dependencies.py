"""
FastAPI dependency providers for the relationship managers.

Routes receive managers through these functions so tests can swap them with
``app.dependency_overrides``.
"""

from photo_circle.managers.family_manager import FamilyManager, family_manager
from photo_circle.managers.friend_manager import FriendManager, friend_manager


def get_friend_manager() -> FriendManager:
    return friend_manager


def get_family_manager() -> FamilyManager:
    return family_manager
