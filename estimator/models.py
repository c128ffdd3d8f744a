"""Records exchanged with the model and kept in the history file.

Wire keys are camelCase, matching the response schema sent to the model;
attributes are snake_case.
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class MachiningOperation(WireModel):
    name: str
    description: str
    estimated_time_seconds: float = Field(alias="estimatedTimeSeconds")
    tool_type: str = Field(alias="toolType")
    rpm: float | None = None
    feed_rate: float | None = Field(default=None, alias="feedRate")


class EstimationResult(WireModel):
    part_name: str = Field(alias="partName")
    material: str
    stock_diameter: str = Field(default="", alias="stockDiameter")
    stock_inner_diameter: str | None = Field(default=None, alias="stockInnerDiameter")
    stock_length: str = Field(default="", alias="stockLength")
    operations: list[MachiningOperation]
    total_time_seconds: float = Field(alias="totalTimeSeconds")
    difficulty_rating: str = Field(alias="difficultyRating")
    notes: str = ""
    # '1-left', '1-right', '1-complete', '2'; copied from the request, not the model
    side_mode: str | None = Field(default=None, alias="sideMode")

    @field_validator("stock_diameter", "stock_length", "notes", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class AnalysisConfig(WireModel):
    material: str = ""
    od: str = ""
    id: str = ""
    length: str = ""
    sides: Literal["1-left", "1-right", "1-complete", "2"] = "1-right"
    strategy: Literal["conservative", "standard", "aggressive"] = "standard"
    spindle_mode: Literal["G96", "G97"] = Field(default="G96", alias="spindleMode")
    user_remarks: str = Field(default="", alias="userRemarks")
    # Never written to the history file
    api_key: str = Field(default="", alias="apiKey", exclude=True)


class HistoryItem(WireModel):
    id: str
    timestamp: int
    result: EstimationResult
    config: AnalysisConfig
    thumbnail: str = ""
    preview_image: str = Field(default="", alias="previewImage")
