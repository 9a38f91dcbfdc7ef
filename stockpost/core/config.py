from pathlib import Path
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

ScheduleMode = Literal["fixed", "adaptive"]
SourceKind = Literal["websocket", "http"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_PATH, env_file_encoding="utf-8", extra="ignore")

    # App
    env: str = "dev"
    service_name: str = "stockpost"
    port: int = 3000
    docs_dir: str = "public"

    # Page / Graph API
    app_id: str | None = None
    app_secret: SecretStr | None = None
    page_id: str | None = None
    page_access_token: SecretStr | None = None
    long_page_access_token: SecretStr | None = None
    graph_base_url: str = "https://graph.facebook.com"

    # Upstream sources
    stock_source: SourceKind = "websocket"
    ws_url: str | None = None
    ws_command: str = "getAllStock"
    stock_http_url: str | None = None
    weather_api: str | None = "https://growagardenstock.com/api/stock/weather"
    predictions_api: str | None = "https://gagstock.gleeze.com/predict"
    predictions_query: str = "seed|gear|egg"
    fetch_timeout_seconds: float = 10.0

    # Media produced by the renderer
    temp_image_path: str = "cache/Temp.png"
    temp_video_path: str = "cache/Temp.mp4"

    # Persisted state
    hash_file: str = "last_stock_hash.txt"
    feed_name: str = "stock"
    tips_path: str = "tips.json"
    tips_cache_path: str = "shown_tips.json"

    # Scheduling
    timezone: str = "Asia/Manila"
    schedule_mode: ScheduleMode = "fixed"
    check_interval_minutes: int = 5
    safety_margin_seconds: float = 1.0
    min_delay_seconds: float = 1.0

    # Publishing
    publish_max_attempts: int = 3
    publish_backoff_seconds: float = 5.0

    # Telemetry
    otlp_endpoint: str | None = None  # e.g. http://localhost:4318


settings = Settings()
