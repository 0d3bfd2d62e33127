"""Pydantic schemas for the settings API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ApiKeyStatusResponse(BaseModel):
    configured: bool
    source: Literal["env", "db", "none"]


class ApiKeyUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(default="", alias="apiKey")


class ApiKeyValidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(default=None, alias="apiKey")


class ApiKeyValidateResponse(BaseModel):
    valid: bool
    error: str | None = None


class ModelUpdateRequest(BaseModel):
    model: str = Field(min_length=1, max_length=128)


class ModelSettingsResponse(BaseModel):
    model: str
    available: list[str]


class SuccessResponse(BaseModel):
    success: bool = True
