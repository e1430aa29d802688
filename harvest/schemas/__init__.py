from harvest.schemas.common import Coordinates, HealthResponse, PaginatedResponse  # noqa: F401
from harvest.schemas.project import AllocatedAreaResponse, ProjectRequest, ProjectView  # noqa: F401
from harvest.schemas.farmer import FarmerRequest, FarmerStatistics, FarmerView  # noqa: F401
from harvest.schemas.bulk_import import (  # noqa: F401
    BulkImportRequest,
    BulkImportResponse,
    BulkImportRow,
    ImportRowError,
)
