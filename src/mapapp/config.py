"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from mapengine.session.controller import has_valid_token


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "MAPSYNC"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Mapbox access token handed to the browser map client.
    # Blank or the "YOUR_TOKEN" placeholder disables the map.
    mapbox_token: str = ""

    # CSV overlay dataset. A URL wins over the local file.
    points_csv_url: str = ""
    points_csv_path: Path = Path("./data/points.csv")
    fetch_timeout: float = 30.0  # seconds

    # DOM element id the client mounts the map into
    map_container: str = "map"

    @property
    def dataset_url(self) -> str:
        return self.points_csv_url.strip() or str(self.points_csv_path)

    @property
    def token_configured(self) -> bool:
        return has_valid_token(self.mapbox_token)


settings = Settings()
