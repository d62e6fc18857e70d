from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    PORT: int = 8001
    LOG_LEVEL: str = "INFO"

    # Reddit
    REDDIT_USER_AGENT: str = "FeedbackPipeline/1.0 (feedback triage; github.com)"
    REDDIT_SORT: str = "relevance"
    REDDIT_SEARCH_TIME: str = "week"
    REDDIT_DEFAULT_SUBREDDITS: str = "SaaS,startups,ProductManagement"

    # Twitter / X
    TWITTER_BEARER_TOKEN: str = ""
    TWITTER_NITTER_INSTANCES: str = ""

    # Fetch behaviour
    SCRAPE_REQUEST_DELAY: float = 1.0
    HTTP_TIMEOUT: float = 20.0

    # Pipeline
    PIPELINE_DEFAULT_QUERIES: str = "saas feedback,product feedback"
    PIPELINE_MAX_QUERIES: int = 2
    PIPELINE_MAX_SUBREDDITS: int = 3
    PIPELINE_MAX_ITEMS: int = 10
    DEDUP_SIMILARITY_THRESHOLD: float = 0.8
    STREAM_QUEUE_SIZE: int = 100

    # Classification / drafting
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Review queue
    TICKET_STORE_SIZE: int = 1000

    # Slack events
    SLACK_VERIFICATION_TOKEN: str = ""
    SLACK_FEEDBACK_CHANNELS: str = ""
    SLACK_EVENT_CACHE_SIZE: int = 1000

    # Scheduled monitoring
    MONITOR_ENABLED: bool = False
    MONITOR_SOURCES: str = "reddit"
    MONITOR_QUERIES: str = ""
    MONITOR_SUBREDDITS: str = ""
    MONITOR_INTERVAL_MINUTES: int = 1440
    MONITOR_MAX_ITEMS: int = 30
    MONITOR_KNOWN_ITEMS: int = 1000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


settings = Settings()
