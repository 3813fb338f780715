from datetime import datetime
from pathlib import Path
from uuid import uuid4

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from repogate.database import Base


class Project(Base):
    """A repository content location linked into the gateway."""
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Absolute path of the repository's working tree
    content_location: Mapped[str] = mapped_column(String(1024), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def repository_path(self) -> Path:
        return Path(self.content_location)

    @property
    def location(self) -> str:
        return f"/api/projects/{self.id}"
