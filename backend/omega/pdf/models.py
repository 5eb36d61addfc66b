from typing import List, Optional

from sqlmodel import SQLModel, Field


class ElementExportRequest(SQLModel):
    """Export d'un document affiché: 'invoice:<id>' ou 'quote:<id>'."""
    source_id: str = Field(..., min_length=1, max_length=100)
    file_name: Optional[str] = Field(default=None, max_length=150)

class PlanningExportRequest(SQLModel):
    columns: List[str] = Field(..., min_length=1)
    rows: List[List[str]] = []
    file_name: Optional[str] = Field(default=None, max_length=150)
