# graphmemory/core/config.py
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parents[1] / "data"

class Settings(BaseSettings):
    MEMORY_FILE: Path = DATA_DIR / "memory.jsonl"
    SCHEMAS_DIR: Path = DATA_DIR / "schemas"
    # Fail the whole load on a corrupt record instead of skipping it.
    STRICT_LOAD: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
