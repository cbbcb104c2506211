import uuid
from datetime import datetime

from pydantic import ConfigDict, Field

from app.models.carrier import CarrierProvider
from app.schemas.base import CamelModel
from app.schemas.delivery_note import HTTP_URL_PATTERN


class CarrierCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    api_endpoint: str = Field(max_length=1024, pattern=HTTP_URL_PATTERN)
    tracking_url_template: str = Field(min_length=1, max_length=1024)
    api_key: str | None = Field(default=None, max_length=512)
    api_secret: str | None = Field(default=None, max_length=512)
    active: bool = True
    provider: CarrierProvider | None = None


class CarrierUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    api_endpoint: str | None = Field(default=None, max_length=1024, pattern=HTTP_URL_PATTERN)
    tracking_url_template: str | None = Field(default=None, min_length=1, max_length=1024)
    api_key: str | None = Field(default=None, max_length=512)
    api_secret: str | None = Field(default=None, max_length=512)
    active: bool | None = None
    provider: CarrierProvider | None = None


class CarrierResponse(CamelModel):
    """Carrier as exposed over HTTP; API credentials are never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    api_endpoint: str
    tracking_url_template: str
    active: bool
    provider: CarrierProvider | None = None
    tenant_id: str
    created_at: datetime
