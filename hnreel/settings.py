import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from hnreel.services.retry import RetryPolicy

load_dotenv()


class Settings(BaseModel):
    # Hacker News endpoints
    hn_base_url: str = Field(
        default="https://hacker-news.firebaseio.com/", alias="HN_BASE_URL"
    )
    search_base_url: str = Field(
        default="https://hn.algolia.com/api/v1", alias="HN_SEARCH_BASE_URL"
    )
    request_timeout: float = Field(default=30.0, alias="HN_REQUEST_TIMEOUT")

    # Retry Configuration
    retry_max_attempts: int = Field(default=3, ge=0, alias="HN_RETRY_MAX_ATTEMPTS")
    retry_initial_delay: float = Field(default=0.3, ge=0, alias="HN_RETRY_INITIAL_DELAY")
    retry_max_delay: float = Field(default=10.0, ge=0, alias="HN_RETRY_MAX_DELAY")
    retry_backoff_multiplier: float = Field(
        default=2.0, ge=1, alias="HN_RETRY_BACKOFF_MULTIPLIER"
    )
    retry_jitter: float = Field(default=0.2, ge=0, le=1, alias="HN_RETRY_JITTER")

    # Fan-out / rate limiting
    max_concurrent: int = Field(default=5, ge=1, alias="HN_MAX_CONCURRENT")
    comment_max_depth: int = Field(default=25, ge=0, alias="HN_COMMENT_MAX_DEPTH")

    debug: bool = Field(default=False, alias="HN_DEBUG")

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy described by these settings."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            backoff_multiplier=self.retry_backoff_multiplier,
            jitter_fraction=self.retry_jitter,
        )


global_settings = Settings.model_validate(dict(os.environ))
