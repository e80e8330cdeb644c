"""Routes package initialization."""

from photo_circle.routes.family import router as family_router
from photo_circle.routes.friends import router as friends_router
