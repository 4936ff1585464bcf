"""
구독 등급별 월간 스토리 한도
"""

import logging

from models.story_models import Profile, SubscriptionTier
from repositories.story_repository import StoryRepository
from utils.errors import NotFoundError, QuotaExceededError

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = "Story limit reached. Upgrade to Premium for unlimited stories!"


class QuotaService:
    def __init__(self, repository: StoryRepository, free_tier_limit: int = 30):
        self.repository = repository
        self.free_tier_limit = free_tier_limit

    async def get_profile(self, user_id: str) -> Profile:
        profile = await self.repository.get_profile(user_id)
        if not profile:
            raise NotFoundError("User profile not found")
        return profile

    def is_limited(self, profile: Profile) -> bool:
        return (
            profile.subscription_tier == SubscriptionTier.FREE
            and profile.stories_this_month >= self.free_tier_limit
        )

    async def check_quota(self, user_id: str) -> Profile:
        """한도 초과 시 QuotaExceededError"""
        profile = await self.get_profile(user_id)
        if self.is_limited(profile):
            logger.info(f"Story quota reached for user {user_id} ({profile.stories_this_month})")
            raise QuotaExceededError(QUOTA_MESSAGE)
        return profile

    async def record_story(self, profile: Profile) -> int:
        """새 스토리 생성 후 카운터 증가"""
        count = profile.stories_this_month + 1
        await self.repository.set_story_count(profile.user_id, count)
        profile.stories_this_month = count
        return count

    def remaining(self, profile: Profile):
        if profile.subscription_tier != SubscriptionTier.FREE:
            return None
        return max(self.free_tier_limit - profile.stories_this_month, 0)
