from __future__ import annotations

from typing import Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.moderation import ModerationResult
from app.services.moderation.banned_words import BannedWordMatcher
from app.services.moderation.rate_limiter import SlidingWindowRateLimiter

logger = get_logger(__name__)


class ModerationService:
    """Pre- and post-moderation checks.

    Internal failures let the message through and are logged; moderation
    must never take the chat down with it.
    """

    def __init__(
        self,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        banned_words: Optional[BannedWordMatcher] = None,
        max_message_length: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        # The limiter defines __len__, so an empty one is falsy.
        if rate_limiter is None:
            rate_limiter = SlidingWindowRateLimiter(
                max_events=settings.MAX_MESSAGES_PER_MINUTE,
                window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
                max_keys=settings.RATE_LIMIT_MAX_TRACKED_USERS,
            )
        self.rate_limiter = rate_limiter
        self.banned_words = BannedWordMatcher() if banned_words is None else banned_words
        self.max_message_length = (
            settings.MAX_MESSAGE_LENGTH if max_message_length is None else max_message_length
        )
        self.enabled = settings.MODERATION_ENABLED if enabled is None else enabled

    async def check_user_input(self, user_id: str, content: str) -> ModerationResult:
        if not self.enabled:
            return ModerationResult()
        try:
            if len(content) > self.max_message_length:
                return ModerationResult(
                    status="BLOCKED",
                    reason=f"Message exceeds maximum length of {self.max_message_length} characters",
                )

            if not self.rate_limiter.hit(user_id):
                logger.warning("User %s exceeded rate limit", user_id)
                return ModerationResult(
                    status="BLOCKED",
                    reason=(
                        "Too many messages. Please wait before sending more "
                        f"(max {self.rate_limiter.max_events} per "
                        f"{int(self.rate_limiter.window_seconds)} seconds)"
                    ),
                )

            check = self.banned_words.check(content)
            if check.has_banned:
                return ModerationResult(
                    status="BLOCKED",
                    reason="Message contains inappropriate content",
                    blocked_words=list(check.found),
                )
            return ModerationResult()
        except Exception:
            logger.exception("Pre-moderation failed for user %s; message allowed", user_id)
            return ModerationResult()

    async def check_ai_response(self, content: str) -> ModerationResult:
        if not self.enabled:
            return ModerationResult()
        try:
            check = self.banned_words.check(content)
            if check.has_banned:
                return ModerationResult(
                    status="BLOCKED",
                    reason="AI response blocked by moderation",
                    blocked_words=list(check.found),
                )
            return ModerationResult()
        except Exception:
            logger.exception("Post-moderation failed; response allowed")
            return ModerationResult()
