from pydantic_settings import BaseSettings
from typing import Dict, Union

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Bot Telemetry Dashboard"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    WS_PATH: str = "/ws"

    DEBUG: bool = False

    # Bind address
    HOST: str = "localhost"
    PORT: int = 3000

    # Snapshot retention: one hour of per-second ticks
    BUFFER_CAPACITY: int = 3600

    # History pagination
    HISTORY_DEFAULT_LIMIT: int = 100
    HISTORY_MAX_LIMIT: int = 1000

    # Live channel
    HEARTBEAT_INTERVAL: float = 30.0
    WS_SEND_QUEUE_SIZE: int = 256

    # Append-only signals log written by the trading loop
    SIGNALS_CSV_PATH: str = "./logs/signals.csv"

    CORS_ORIGINS: list = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    def telemetry_config(self) -> Dict[str, Union[int, str]]:
        """Producer-facing configuration surface."""
        return {
            "capacity": self.BUFFER_CAPACITY,
            "bindHost": self.HOST,
            "bindPort": self.PORT,
        }

settings = Settings()
