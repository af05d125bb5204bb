# chatsync/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - CHAT_TRANSPORT the live stream backend: "websocket" or "redis"
        - CHAT_STORE where rooms/messages/preferences persist: "file", "redis" or "memory"
        - CHAT_WS_URL the relay endpoint used by the websocket transport
    """

    # Load environment variables from the .env file
    load_dotenv()

    CHAT_TRANSPORT: Literal["websocket", "redis"] = os.getenv("CHAT_TRANSPORT", "websocket")
    CHAT_WS_URL: str = os.getenv("CHAT_WS_URL", "ws://localhost:8080/chat")

    CHAT_STORE: Literal["file", "redis", "memory"] = os.getenv("CHAT_STORE", "file")
    CHAT_STORE_DIR: str = os.path.expanduser(os.getenv("CHAT_STORE_DIR", "~/.chatsync"))
    STORE_WRITE_RETRIES: int = int(os.getenv("STORE_WRITE_RETRIES", "5"))

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_KEY_PREFIX: str = os.getenv("REDIS_KEY_PREFIX", "chatsync:")

    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    @property
    def REDIS_URL(self) -> str:
        explicit = os.getenv("REDIS_URL")
        if explicit:
            return explicit
        # Access keys imply a TLS endpoint (managed Redis)
        if self.REDIS_ACCESS_KEY:
            return f"rediss://:{self.REDIS_ACCESS_KEY}@{self.REDIS_HOST}:{self.REDIS_PORT}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"


settings = Settings()
