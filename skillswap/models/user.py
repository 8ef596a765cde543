from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from skillswap.models.document import DocumentModel

# Predefined skill categories, a skill is stored as "<category>: <label>"
SKILL_CATEGORIES = [
    "Programming & Development",
    "Design & Creative",
    "Language Learning",
    "Music & Instruments",
    "Cooking & Baking",
    "Fitness & Sports",
    "Academic Subjects",
    "Business & Finance",
    "Arts & Crafts",
    "Photography & Videography",
    "Writing & Editing",
    "Public Speaking",
    "DIY & Home Improvement",
    "Gardening",
    "Other",
]


def _clean_skills(skills: List[str]) -> List[str]:
    cleaned = [skill.strip() for skill in skills]
    if any(not skill for skill in cleaned):
        raise ValueError("Skills cannot be empty")
    return cleaned


class PrivacySettings(BaseModel):
    show_profile: bool = Field(True, alias="showProfile")
    show_skills: bool = Field(True, alias="showSkills")
    allow_messages: bool = Field(True, alias="allowMessages")

    class Config:
        populate_by_name = True


class UserSettings(BaseModel):
    email_notifications: bool = Field(True, alias="emailNotifications")
    push_notifications: bool = Field(False, alias="pushNotifications")
    theme: Literal["light", "dark"] = "light"
    language: str = "en"
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings, alias="privacySettings")

    class Config:
        populate_by_name = True


class UserProfile(DocumentModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    photo_url: Optional[str] = Field(None, alias="photoURL")
    bio: str = ""
    location: str = ""
    availability: str = ""
    skills_offered: List[str] = Field(default_factory=list, alias="skillsOffered")
    skills_wanted: List[str] = Field(default_factory=list, alias="skillsWanted")
    onboarding_completed: bool = Field(False, alias="onboardingCompleted")
    ratings: List[float] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @property
    def average_rating(self) -> float:
        if not self.ratings:
            return 0.0
        return sum(self.ratings) / len(self.ratings)


class Identity(BaseModel):
    """Authenticated caller, built from a verified Firebase ID token"""
    uid: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None

    @classmethod
    def from_token(cls, decoded_token: dict) -> "Identity":
        return cls(
            uid=decoded_token["uid"],
            display_name=decoded_token.get("name"),
            email=decoded_token.get("email"),
            photo_url=decoded_token.get("picture"),
        )


# ****************************************************
#  Request models
# ****************************************************

class ProfileUpdate(BaseModel):
    """Partial profile update, unset fields are left untouched"""
    display_name: Optional[str] = Field(None, alias="displayName", min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=200)
    availability: Optional[str] = Field(None, max_length=200)
    skills_offered: Optional[List[str]] = Field(None, alias="skillsOffered")
    skills_wanted: Optional[List[str]] = Field(None, alias="skillsWanted")
    photo_url: Optional[str] = Field(None, alias="photoURL")

    class Config:
        populate_by_name = True

    @field_validator("skills_offered", "skills_wanted")
    @classmethod
    def validate_skills(cls, skills):
        return _clean_skills(skills) if skills is not None else skills

    def to_fields(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class OnboardingRequest(BaseModel):
    bio: str = Field("", max_length=1000)
    location: str = Field("", max_length=200)
    availability: str = Field("", max_length=200)
    skills_offered: List[str] = Field(default_factory=list, alias="skillsOffered")
    skills_wanted: List[str] = Field(default_factory=list, alias="skillsWanted")

    class Config:
        populate_by_name = True

    @field_validator("skills_offered", "skills_wanted")
    @classmethod
    def validate_skills(cls, skills):
        return _clean_skills(skills)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    id_token: str
    refresh_token: str
    expires_in: int
    profile: UserProfile
