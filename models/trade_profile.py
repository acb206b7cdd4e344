# models/trade_profile.py
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

PHONE_PATTERN = r"^[0-9]{10,15}$"
BIO_MAX_LENGTH = 500
# Column widths of the users / trade_profiles tables
NAME_MAX_LENGTH = 100
CITY_MAX_LENGTH = 100
AVAILABILITY_MAX_LENGTH = 255


class TradeProfile(BaseModel):
    """
    Public trade profile of a tradesman (tradesmen database, `trade_profiles` table).

    name / email / phone_number are copies of the owner's account taken when the
    profile was created; they are not kept in sync with later account edits.
    """

    id: str
    owner_user_id: str
    owner_user_id_string: str
    name: str
    email: str
    phone_number: str = ""
    skills: list[str]
    experience: int = Field(..., ge=0)
    hourly_rate: float = Field(..., ge=0)
    city: str
    bio: str = Field(..., max_length=BIO_MAX_LENGTH)
    availability: str
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    profile_image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TradeProfileForm(BaseModel):
    """Fields submitted by a customer who wants to start offering a trade."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    skills: list[str] = Field(..., min_length=1)
    experience: int = Field(..., ge=0)
    hourly_rate: float = Field(..., ge=0)
    city: str = Field(..., min_length=1, max_length=CITY_MAX_LENGTH)
    bio: str = Field(..., min_length=1, max_length=BIO_MAX_LENGTH)
    availability: str = Field(..., min_length=1, max_length=AVAILABILITY_MAX_LENGTH)
    profile_image: str | None = None

    @field_validator("name", "phone", "city", "bio", "availability", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, value):
        # Accepts a single "Plumbing, Tiling" string or repeated form values
        if isinstance(value, str):
            value = [value]
        skills = []
        for item in value or []:
            for part in str(item).split(","):
                part = part.strip()
                if part and part not in skills:
                    skills.append(part)
        return skills
