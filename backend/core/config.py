import os
from typing import List, Literal
from dotenv import load_dotenv


# Load environment variables from .env file located in the parent directory
# Environment variables explicitly set (e.g., by Docker Compose) will take precedence.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_PATH = os.path.join(BASE_DIR, '.env')
load_dotenv(ENV_PATH)


def parse_list(value: str) -> List[str]:
    """
    Parses a comma-separated setting into a list of trimmed, non-empty strings.
    Example: "user-topic, course-topic" → ["user-topic", "course-topic"]
    """
    if not value:
        return []
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    return [item.strip().strip('"').strip("'") for item in value.split(",") if item.strip()]


def parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # --- General Environment Settings ---
    ENVIRONMENT: Literal["local", "staging",
                         "production"] = os.getenv('ENVIRONMENT', 'local')
    SERVICE_NAME: str = os.getenv('SERVICE_NAME', 'learning-sync')

    # --- PostgreSQL Database Configuration ---
    # Defaults are set for local Docker Compose setup.
    POSTGRES_USER: str = os.getenv('POSTGRES_USER', 'sync')
    POSTGRES_PASSWORD: str = os.getenv('POSTGRES_PASSWORD', 'sync_password')
    POSTGRES_SERVER: str = os.getenv('POSTGRES_SERVER', 'postgres')
    POSTGRES_PORT: int = int(os.getenv('POSTGRES_PORT', 5432))
    POSTGRES_DB: str = os.getenv('POSTGRES_DB', 'learning_sync_db')
    # Full URL takes precedence over the individual components when set.
    POSTGRES_DB_URL: str = os.getenv('POSTGRES_DB_URL', "")
    # Create missing tables on startup (schema migrations are managed elsewhere in production).
    DB_CREATE_TABLES: bool = parse_bool(os.getenv('DB_CREATE_TABLES', 'false'))

    # --- Kafka Configuration ---
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv('KAFKA_BOOTSTRAP_SERVERS', 'localhost:9092')
    KAFKA_CLIENT_ID: str = os.getenv('KAFKA_CLIENT_ID', 'centralized-consumer')
    KAFKA_CONSUMER_GROUP_ID: str = os.getenv('KAFKA_CONSUMER_GROUP_ID', 'centralized-consumer-group')
    KAFKA_AUTO_OFFSET_RESET: str = os.getenv('KAFKA_AUTO_OFFSET_RESET', 'latest')
    KAFKA_SESSION_TIMEOUT_MS: int = int(os.getenv('KAFKA_SESSION_TIMEOUT_MS', '30000'))
    KAFKA_HEARTBEAT_INTERVAL_MS: int = int(os.getenv('KAFKA_HEARTBEAT_INTERVAL_MS', '10000'))
    KAFKA_RETRY_BACKOFF_MS: int = int(os.getenv('KAFKA_RETRY_BACKOFF_MS', '100'))
    KAFKA_CONSUMER_ENABLED: bool = parse_bool(os.getenv('KAFKA_CONSUMER_ENABLED', 'true'))

    KAFKA_TOPIC_USER: str = os.getenv('KAFKA_TOPIC_USER', 'user-topic')
    KAFKA_TOPIC_EVENT: str = os.getenv('KAFKA_TOPIC_EVENT', 'event-topic')
    KAFKA_TOPIC_ATTENDANCE: str = os.getenv('KAFKA_TOPIC_ATTENDANCE', 'attendance-topic')
    KAFKA_TOPIC_COURSE: str = os.getenv('KAFKA_TOPIC_COURSE', 'course-topic')
    KAFKA_TOPIC_ASSESSMENT: str = os.getenv('KAFKA_TOPIC_ASSESSMENT', 'assessment-topic')
    KAFKA_TOPIC_PROJECT: str = os.getenv('KAFKA_TOPIC_PROJECT', 'project-topic')
    # Topics the consumer subscribes to; defaults to every routed topic.
    RAW_KAFKA_TOPICS: str = os.getenv('KAFKA_TOPICS', '')

    # --- External Content API ---
    CONTENT_API_BASE_URL: str = os.getenv('CONTENT_API_BASE_URL', 'http://localhost:8080')
    CONTENT_API_SEARCH_PATH: str = os.getenv('CONTENT_API_SEARCH_PATH', '/api/content/v1/search')
    CONTENT_API_KEY: str = os.getenv('CONTENT_API_KEY', '')
    CONTENT_API_CHANNEL: str = os.getenv('CONTENT_API_CHANNEL', '')
    CONTENT_API_PAGE_SIZE: int = int(os.getenv('CONTENT_API_PAGE_SIZE', '100'))
    CONTENT_API_TIMEOUT_SECONDS: float = float(os.getenv('CONTENT_API_TIMEOUT_SECONDS', '30'))

    # --- Content Sync Job ---
    CONTENT_SYNC_ENABLED: bool = parse_bool(os.getenv('CONTENT_SYNC_ENABLED', 'true'))
    # Crontab expression; runs at 12 PM daily by default.
    CONTENT_SYNC_SCHEDULE: str = os.getenv('CONTENT_SYNC_SCHEDULE', '0 12 * * *')
    CONTENT_SYNC_TIMEZONE: str = os.getenv('CONTENT_SYNC_TIMEZONE', 'UTC')

    # --- Logging ---
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT: str = os.getenv('LOG_FORMAT', 'json')
    LOG_TO_FILE: bool = parse_bool(os.getenv('LOG_TO_FILE', 'false'))
    LOG_DIR: str = os.getenv('LOG_DIR', 'logs')

    @property
    def KAFKA_TOPICS(self) -> List[str]:
        """Subscription list. Falls back to every topic the router knows about."""
        topics = parse_list(self.RAW_KAFKA_TOPICS)
        if topics:
            return topics
        return [
            self.KAFKA_TOPIC_USER,
            self.KAFKA_TOPIC_EVENT,
            self.KAFKA_TOPIC_ATTENDANCE,
            self.KAFKA_TOPIC_COURSE,
            self.KAFKA_TOPIC_ASSESSMENT,
            self.KAFKA_TOPIC_PROJECT,
        ]

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """
        Constructs the SQLAlchemy database URI.
        Prioritizes a full URL (POSTGRES_DB_URL) over individual components.
        """
        if self.POSTGRES_DB_URL:
            return self.POSTGRES_DB_URL

        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


# Instantiate the settings object to be used throughout the application
settings = Settings()
