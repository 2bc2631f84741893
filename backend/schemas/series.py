from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class AnalyteRequest(BaseModel):
    """Inbound smart-blurb payload; field aliases follow the UI's camelCase body."""

    model_config = ConfigDict(populate_by_name=True)

    card_id: int | None = Field(default=None, alias="cardId")
    analyte: str | None = None
    analytes: list[str] | None = None
    force_supabase: bool = Field(default=False, alias="forceSupabase")
    ai_prompt: str | None = Field(default=None, alias="aiPrompt")
    debug: bool = False
    custom_data: dict[str, Any] | None = Field(default=None, alias="customData")
    custom_prompt: str | None = Field(default=None, alias="customPrompt")

    def requested_names(self, default: str) -> list[str]:
        if self.analytes:
            names = [name for name in self.analytes if name and name.strip()]
            if names:
                return names
        if self.analyte and self.analyte.strip():
            return [self.analyte]
        return [default]


class SeriesPoint(BaseModel):
    date: date
    value: float


class AnalyteSeries(BaseModel):
    name: str
    unit: str | None = None
    points: list[SeriesPoint] = Field(default_factory=list)


class ReferenceRange(BaseModel):
    low: float | None = None
    high: float | None = None

    @property
    def is_empty(self) -> bool:
        return self.low is None and self.high is None


class Pivoted(BaseModel):
    """Wide rows: every date is its own column header."""

    kind: Literal["pivoted"] = "pivoted"
    date_column_keys: list[str]


class Longform(BaseModel):
    """One observation per row; ``value_key`` is None when no numeric column was found."""

    kind: Literal["longform"] = "longform"
    time_key: str | None
    value_key: str | None


InferredSchema = Pivoted | Longform


class Outcome(str, Enum):
    SERIES = "series"
    NO_DATA_FOUND = "no_data_found"
    NO_NUMERIC_SERIES = "no_numeric_series"
    NO_NUMERIC_POINTS = "no_numeric_points"
