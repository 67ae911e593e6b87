import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_COMPONENT_MAP_PATH = Path(__file__).resolve().parent / "data" / "component_map.json"


class Settings(BaseSettings):
    """
    Configuration settings for the figma-bridge producer and consumer.
    Settings are loaded from environment variables and/or a .env file.
    """

    # --- General Settings ---
    SERVICE_NAME: str = Field(default="figma_bridge", description="Name used as the logger root.")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level for the process."
    )

    # --- WebSocket Handoff Settings ---
    WS_HOST: str = Field(default="127.0.0.1", description="Host the handoff endpoint binds to.")
    WS_PORT: int = Field(default=9876, description="Port the handoff endpoint listens on.")
    SESSION_TIMEOUT_S: float = Field(
        default=300.0,
        description="Seconds a session may stay open without reaching a terminal state.",
    )

    # --- Design Spec Settings ---
    MAX_NODE_DEPTH: int = Field(
        default=64,
        description="Maximum nesting depth accepted for a design spec node tree.",
    )

    # --- AI Analysis Settings ---
    OPENAI_API_KEY: Optional[SecretStr] = Field(
        default=None, description="API key for the vision model used to draft design specs."
    )
    AI_MODEL_NAME: str = Field(default="gpt-4o", description="Vision-capable chat model name.")
    AI_MAX_TOKENS: int = Field(default=8192, description="Token budget for one analysis response.")
    AI_MAX_RETRIES: int = Field(
        default=2,
        description="Retries after the first analysis attempt when the response fails to validate.",
    )
    AI_SOURCE_CHAR_LIMIT: int = Field(
        default=40000, description="Characters of project source forwarded to the model."
    )

    # --- Code Reader Settings ---
    MAX_SOURCE_BYTES: int = Field(
        default=50 * 1024, description="Upper bound for the concatenated source text."
    )

    # --- Screenshot Settings ---
    VIEWPORT_WIDTH: int = Field(default=1440, description="Default capture viewport width.")
    VIEWPORT_HEIGHT: int = Field(default=900, description="Default capture viewport height.")
    CAPTURE_TIMEOUT_S: float = Field(default=30.0, description="Navigation timeout for captures.")
    CAPTURE_SETTLE_MS: int = Field(
        default=1000, description="Extra wait after network idle for late-rendering scripts."
    )

    # --- Component Map Settings ---
    COMPONENT_MAP_FILE_PATH: str = Field(
        default=str(DEFAULT_COMPONENT_MAP_PATH),
        description="Path to the JSON file mapping component names to library assets.",
    )
    ENABLE_HOT_RELOAD: bool = Field(
        default=False,
        description="Whether to watch the component map file and reload it on change.",
    )

    # --- Figma REST API (extract-keys command only) ---
    FIGMA_TOKEN: Optional[SecretStr] = Field(
        default=None, description="Personal access token sent as X-Figma-Token."
    )
    FIGMA_FILE_KEY: str = Field(
        default="1203061493325953101",
        description="Library file whose published components supply the asset keys.",
    )
    FIGMA_API_URL: str = Field(default="https://api.figma.com/v1", description="Figma REST API base URL.")
    FIGMA_API_TIMEOUT_S: float = Field(default=30.0, description="Timeout for one Figma API request.")

    model_config = SettingsConfigDict(
        env_file=".env",  # Load .env file if present
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables
        case_sensitive=False,
    )

    def get_absolute_component_map_path(self) -> Path:
        """
        Returns the absolute path to the component map file.
        Relative paths are resolved against the current working directory.
        """
        path = Path(self.COMPONENT_MAP_FILE_PATH)
        if path.is_absolute():
            return path
        return Path.cwd() / path


# Initialize settings globally for easy access
settings = Settings()

# Configure logging based on settings
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(settings.SERVICE_NAME)

startup_log_settings = {
    k: (v.get_secret_value()[:4] + "****" if isinstance(v, SecretStr) else v)
    for k, v in settings.model_dump().items()
}
logger.debug(f"figma-bridge settings loaded: {startup_log_settings}")

if __name__ == "__main__":
    print("Loaded figma-bridge Settings:")
    for field_name, value in settings.model_dump().items():
        if isinstance(value, SecretStr):
            print(f"  {field_name}: {value.get_secret_value()[:4]}****")
        else:
            print(f"  {field_name}: {value}")
    component_map_path = settings.get_absolute_component_map_path()
    print(f"\nComponent map file: {component_map_path}")
    print(f"Component map exists: {component_map_path.exists()}")
