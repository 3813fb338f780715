from repogate.models.project import Project

__all__ = [
    "Project",
]
