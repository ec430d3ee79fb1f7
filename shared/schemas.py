"""Pydantic schemas for validation and serialization."""
from datetime import datetime
from typing import Optional, List, Union, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from shared.enums import SurveyStatus
from shared.models import APP_TIMEZONE
from shared.validation import Validator, ValidationError


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _with_app_timezone(value):
    # SQLite hands back the stored IST wall clock without an offset
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=APP_TIMEZONE)
    return value


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input and dumps camelCase for the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


# Citizen Schemas
class SignupRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    ward: str = Field(..., max_length=50)

    @field_validator('name', 'ward', mode='before')
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('ward')
    @classmethod
    def ward_not_empty(cls, v):
        if not v:
            raise ValueError('ward is required')
        return Validator.sanitize_html(v)

    @field_validator('name')
    @classmethod
    def sanitize_name(cls, v):
        return Validator.sanitize_html(v)

    @field_validator('email')
    @classmethod
    def check_email(cls, v):
        try:
            return Validator.validate_email(v).lower()
        except ValidationError as e:
            raise ValueError(str(e))


class LoginRequest(CamelModel):
    email: str = ''
    password: str = ''
    role: Optional[str] = None

    @property
    def wants_admin(self):
        return str(self.role or '').strip().lower() == 'admin'


class CitizenResponse(CamelModel):
    id: int
    name: str
    email: str
    ward: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @field_validator('created_at')
    @classmethod
    def localize_created_at(cls, v):
        return _with_app_timezone(v)


# Survey Schemas
class SurveyFields(CamelModel):
    """Scalar survey attributes shared by the create, upload and edit payloads."""
    mobile: Optional[str] = Field(None, max_length=20)
    ward: Optional[str] = Field(None, max_length=50)
    road: Optional[str] = Field(None, max_length=255)
    property_type: Optional[str] = Field(None, max_length=100)
    ownership_type: Optional[str] = Field(None, max_length=255)
    number_of_floors: Optional[int] = Field(None, ge=0, le=200)
    plot_area: Optional[float] = Field(None, ge=0)
    built_up_area: Optional[float] = Field(None, ge=0)
    geo_lat: Optional[float] = None
    geo_lng: Optional[float] = None
    property_situation: Optional[str] = Field(None, max_length=100)

    @field_validator('number_of_floors', 'plot_area', 'built_up_area', 'geo_lat', 'geo_lng', mode='before')
    @classmethod
    def empty_numbers_are_absent(cls, v):
        return _blank_to_none(v)

    @field_validator('mobile', 'ward', 'road', 'property_type', 'ownership_type', 'property_situation')
    @classmethod
    def sanitize_text_fields(cls, v):
        if v is None:
            return v
        return Validator.sanitize_html(v.strip())

    @field_validator('geo_lat')
    @classmethod
    def check_latitude(cls, v):
        if v is None:
            return v
        try:
            return Validator.validate_latitude(v)
        except ValidationError as e:
            raise ValueError(str(e))

    @field_validator('geo_lng')
    @classmethod
    def check_longitude(cls, v):
        if v is None:
            return v
        try:
            return Validator.validate_longitude(v)
        except ValidationError as e:
            raise ValueError(str(e))


class SurveyIdentity(SurveyFields):
    email: str = Field(..., max_length=255)
    name: str = Field(..., min_length=2, max_length=255)

    @field_validator('email')
    @classmethod
    def check_email(cls, v):
        try:
            return Validator.validate_email(v)
        except ValidationError as e:
            raise ValueError(str(e))

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('name')
    @classmethod
    def sanitize_name(cls, v):
        return Validator.sanitize_html(v)


class SurveyCreate(SurveyIdentity):
    """Legacy JSON submission; images are already-hosted URLs or filenames."""
    images: Optional[Union[List[str], str]] = None

    def images_text(self):
        if isinstance(self.images, list):
            return ','.join(str(image).strip() for image in self.images if str(image).strip())
        return self.images or ''


class SurveyUpload(SurveyIdentity):
    """Text fields of the multipart submission."""
    pass


class SurveyUpdate(SurveyFields):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    owner_details: Optional[Any] = None

    @field_validator('name')
    @classmethod
    def sanitize_name(cls, v):
        if v is not None:
            return Validator.sanitize_html(v.strip())
        return v


class SurveyRecord(CamelModel):
    """Scalar columns of a stored survey as exposed by the read endpoints."""
    id: int
    citizen_email: str
    mobile: Optional[str] = None
    name: str
    ward: Optional[str] = None
    road: Optional[str] = None
    property_type: Optional[str] = None
    ownership_type: Optional[str] = None
    number_of_floors: Optional[int] = None
    plot_area: Optional[float] = None
    built_up_area: Optional[float] = None
    geo_lat: Optional[float] = None
    geo_lng: Optional[float] = None
    property_situation: Optional[str] = None
    status: SurveyStatus = SurveyStatus.PENDING
    created_at: Optional[datetime] = None
    is_edited: bool = False
    edited_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              use_enum_values=True, from_attributes=True)

    @field_validator('created_at', 'edited_at')
    @classmethod
    def localize_timestamps(cls, v):
        return _with_app_timezone(v)
