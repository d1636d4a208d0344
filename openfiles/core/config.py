
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", os.path.abspath("./uploads"))
    UPLOAD_LIMIT_MB: int = int(os.getenv("UPLOAD_LIMIT_MB", "15"))
    SNAPSHOT_FILENAME: str = "uploadedFiles.json"
    # answer unknown ids with 500 for clients built against older servers
    LEGACY_NOT_FOUND_STATUS: bool = _env_flag("LEGACY_NOT_FOUND_STATUS")
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8080"))

    @property
    def upload_limit_bytes(self) -> int:
        return self.UPLOAD_LIMIT_MB * 1024 * 1024

    @property
    def snapshot_path(self) -> Path:
        return Path(self.UPLOAD_DIR) / self.SNAPSHOT_FILENAME

settings = Settings()
