# Import all models so Alembic autogenerate and SQLAlchemy can see them
from harvest.models.cooperative import Cooperative  # noqa: F401
from harvest.models.farmer import Farmer, FarmerStatus  # noqa: F401
from harvest.models.project import Project, ProjectStatus  # noqa: F401

__all__ = [
    "Cooperative",
    "Farmer",
    "FarmerStatus",
    "Project",
    "ProjectStatus",
]
