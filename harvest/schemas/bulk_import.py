from typing import Any

from pydantic import BaseModel, Field, field_validator

from harvest.schemas.farmer import FarmerView


class BulkImportRow(BaseModel):
    """One spreadsheet row.

    Fields are deliberately loose: a bad row must come back as an ImportRowError
    in the report, not fail the whole request with a 422. Numeric cells in text
    columns are read as text, and coordinates are parsed by the importer.
    """

    full_name: str | None = None
    phone_number: str | None = None
    location: str | None = None
    language: str | None = None
    area_ha: float | str | None = None
    status: str | None = None
    coordinates: dict[str, Any] | None = None

    @field_validator("full_name", "phone_number", "location", "language", "status", mode="before")
    @classmethod
    def cell_as_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        # Spreadsheets hand back 612345679 as 612345679.0
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    @field_validator("area_ha", mode="before")
    @classmethod
    def area_cell(cls, value: Any) -> Any:
        if value is None or isinstance(value, str) or (
            isinstance(value, (int, float)) and not isinstance(value, bool)
        ):
            return value
        return str(value)


class BulkImportRequest(BaseModel):
    farmers: list[BulkImportRow] = Field(min_length=1)


class ImportRowError(BaseModel):
    # Spreadsheet row number: list index + 2 (1-based, after the header row).
    row: int
    farmer: dict[str, Any]
    error: str


class BulkImportResponse(BaseModel):
    total_processed: int = 0
    success_count: int = 0
    failure_count: int = 0
    errors: list[ImportRowError] = []
    imported_farmers: list[FarmerView] = []
