import logging

from pydantic import BaseModel

from payflow.core.config import Settings, settings as default_settings
from payflow.core.exceptions import ValidationError
from payflow.services.transport import ApiClient

logger = logging.getLogger(__name__)


class AvatarUploadResponse(BaseModel):
    avatar_url: str


class ProfileService:
    AVATAR_ENDPOINT = "/profile/avatar"

    def __init__(self, api: ApiClient, settings: Settings = default_settings):
        self.api = api
        self.max_size = settings.AVATAR_MAX_SIZE

    async def upload_avatar(self, image_bytes: bytes) -> str:
        """Upload a JPEG avatar and return its public URL"""
        if not image_bytes:
            raise ValidationError("Please select an image")
        if len(image_bytes) > self.max_size:
            raise ValidationError(f"Image is too large. Maximum size is {self.max_size // (1024 * 1024)}MB")

        response = await self.api.upload(
            self.AVATAR_ENDPOINT,
            file_bytes=image_bytes,
            file_key="avatar",
            response_model=AvatarUploadResponse,
        )
        logger.info("Avatar uploaded")
        return response.avatar_url
