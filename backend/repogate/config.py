from pydantic import BaseModel
from functools import lru_cache
from pathlib import Path
import os


DEFAULT_CLONE_ROOT = Path(__file__).parent.parent / "clones"


class Settings(BaseModel):
    app_name: str = "RepoGate"
    database_url: str = "sqlite+aiosqlite:///./repogate.db"
    cors_origins: list[str] = ["http://localhost:5173"]
    log_level: str = "INFO"
    clone_root: Path = DEFAULT_CLONE_ROOT  # Where POST /api/git/clone puts new repositories
    committer: str = "RepoGate <repogate@localhost>"
    task_retention_seconds: float = 300.0  # How long terminal tasks stay pollable
    mutation_lock_timeout: float = 30.0  # Seconds a mutation waits for its repository before rejection
    protocol_version_header: str = "Gateway-Version"
    supported_protocol_versions: list[str] = ["1"]


@lru_cache
def get_settings() -> Settings:
    settings = Settings(
        database_url=os.getenv("REPOGATE_DATABASE_URL", "sqlite+aiosqlite:///./repogate.db"),
        log_level=os.getenv("REPOGATE_LOG_LEVEL", "INFO"),
        committer=os.getenv("REPOGATE_COMMITTER", "RepoGate <repogate@localhost>"),
        task_retention_seconds=float(os.getenv("REPOGATE_TASK_RETENTION", "300")),
        mutation_lock_timeout=float(os.getenv("REPOGATE_LOCK_TIMEOUT", "30")),
    )
    if os.getenv("REPOGATE_CLONE_ROOT"):
        settings.clone_root = Path(os.environ["REPOGATE_CLONE_ROOT"])
    if os.getenv("REPOGATE_CORS_ORIGINS"):
        settings.cors_origins = [o.strip() for o in os.environ["REPOGATE_CORS_ORIGINS"].split(",") if o.strip()]
    return settings
