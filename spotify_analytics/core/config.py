import ast
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    app_name: str = "Spotify Analytics API"
    version: str = "1.0.0"
    debug: bool = Field(default=False)

    # Server settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10000)

    # Database settings
    database_url: str = Field(default="sqlite+aiosqlite:///./data/spotify.db")
    database_echo: bool = Field(default=False)
    table_name: str = Field(default="spotify")

    # Data source settings
    csv_file_path: str = Field(default="data/Spotify_Youtube.csv")
    max_csv_rows: Optional[int] = Field(default=None)
    load_batch_size: int = Field(default=1000, gt=0)

    # Query defaults
    stream_threshold: int = Field(default=1_000_000_000, ge=0)
    energy_liveness_threshold: float = Field(default=1.2)
    top_tracks_per_artist: int = Field(default=3, gt=0)
    top_energy_limit: int = Field(default=5, gt=0)
    max_result_rows: int = Field(default=1000, gt=0)

    # Hosts accepted by TrustedHostMiddleware
    allowed_hosts: List[str] = Field(default=["*"])

    # CORS settings
    cors_origins: Union[List[str], str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
    )

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v):
        if isinstance(v, str):
            if v.strip() == "*":
                return ["*"]
            try:
                parsed = ast.literal_eval(v)
                if isinstance(parsed, list):
                    return parsed
                else:
                    return [parsed]
            except (ValueError, SyntaxError):
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


# Global settings instance
settings = Settings()
