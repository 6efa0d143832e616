from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    environment: str = "development"
    api_prefix: str = ""
    log_level: str = "INFO"

    # Backup output
    data_dir: str = "./data"
    default_countries: List[str] = ["EE"]
    default_levels: List[int] = [2, 6, 7, 8, 9, 10]
    backup_delay_ms: int = 300  # Politeness throttle between Overpass requests
    backup_retain_raw: bool = True  # Keep raw Overpass responses as side-car files
    backup_compress: bool = True  # Store backups as <CC>_L<n>.json.gz
    backup_fail_fast: bool = False  # Abort the whole run on the first failed target

    # Overpass API settings
    # Try multiple Overpass API endpoints for reliability
    overpass_api_url: str = "https://overpass-api.de/api/interpreter"
    overpass_api_alternatives: List[str] = [
        "https://overpass-api.de/api/interpreter",
        "https://overpass.kumi.systems/api/interpreter",
        "https://overpass.openstreetmap.ru/api/interpreter",
    ]
    overpass_timeout_seconds: int = 180  # HTTP timeout per attempt
    overpass_query_timeout_seconds: int = 180  # [timeout:...] inside the query
    overpass_max_attempts: int = 3  # Attempts per endpoint
    overpass_backoff_base_ms: int = 800
    overpass_user_agent: str = "AdminBoundaryBackup/1.0"

    # Deep levels are unreliable as a single query, chunk them on any failure
    chunk_proactive_min_level: int = 8

    # Read-only server
    server_host: str = "127.0.0.1"
    server_port: int = 8787

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def overpass_endpoints(self) -> List[str]:
        """Primary endpoint followed by the alternatives, without duplicates."""
        endpoints: List[str] = []
        for url in [self.overpass_api_url, *self.overpass_api_alternatives]:
            url = url.strip()
            if url and url not in endpoints:
                endpoints.append(url)
        return endpoints


@lru_cache
def get_settings() -> Settings:
    return Settings()
