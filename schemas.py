from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    RootModel,
    StringConstraints,
    field_validator,
    model_validator,
)

from utils.dates import to_naive_utc


# Enum pour les rôles et statuts des utilisateurs
class UserRole(str, Enum):
    member = "member"
    admin = "admin"


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class DocumentModel(BaseModel):
    """
    Modèle de base des corps de requête destinés à être stockés :
    les enums sont gardés sous forme de chaînes et toutes les dates
    reçues sont ramenées en UTC naïf.
    """
    model_config = ConfigDict(use_enum_values=True)

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_dates(cls, value):
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return value


# --- Schémas pour les utilisateurs ---

class UserBase(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr


# Schéma pour la création d'utilisateur (inclut le mot de passe)
class UserCreate(UserBase, DocumentModel):
    password: str = Field(min_length=6)

    @field_validator("username")
    @classmethod
    def _strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value


class AdminUserCreate(UserCreate):
    role: UserRole = UserRole.member


# Schéma pour la lecture d'un utilisateur (réponse API, jamais de mot de passe)
class User(UserBase):
    id: str
    role: UserRole
    status: UserStatus
    expiryDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class UserRoleUpdate(DocumentModel):
    role: UserRole


class Reactivation(BaseModel):
    months: int = Field(ge=1, le=120)


# --- Schémas pour l'authentification ---

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    token: str
    role: UserRole


class CurrentUser(BaseModel):
    """Identité portée par le token : pas de lecture en base."""
    id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


# --- Industries ---

class Product(DocumentModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(ge=0)
    images: List[str] = []


class Vacancy(DocumentModel):
    available: bool = False
    description: Optional[str] = None

    @model_validator(mode="after")
    def _drop_description_when_closed(self):
        # La description n'a de sens que si un poste est ouvert
        if not self.available:
            self.description = None
        return self


# Nom nettoyé avant contrôle de longueur et d'unicité
IndustryName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class IndustryCreate(DocumentModel):
    name: IndustryName
    description: str = Field(min_length=1, max_length=500)
    products: List[Product] = []
    materials: List[str] = []
    gstInfo: str = Field(min_length=1)
    contactNumber: str = Field(min_length=1)
    vacancy: Vacancy = Vacancy()
    images: List[str] = []


class IndustryUpdate(DocumentModel):
    name: Optional[IndustryName] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    products: Optional[List[Product]] = None
    materials: Optional[List[str]] = None
    gstInfo: Optional[str] = Field(default=None, min_length=1)
    contactNumber: Optional[str] = Field(default=None, min_length=1)
    vacancy: Optional[Vacancy] = None
    images: Optional[List[str]] = None

    @model_validator(mode="after")
    def _reject_explicit_nulls(self):
        # Un champ omis reste inchangé ; un champ envoyé à null est refusé
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


# --- Actualités (updates) ---

class UpdateType(str, Enum):
    news = "news"
    announcement = "announcement"
    blogs = "blogs"
    gallery = "gallery"
    notices = "notices"
    workshop = "workshop"


class UpdateBase(DocumentModel):
    title: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1, max_length=1000)


class BlogUpdate(UpdateBase):
    type: Literal["blogs"]
    redirectUrl: str = Field(min_length=1)


class StandardUpdate(UpdateBase):
    # Pas de champ redirectUrl : une valeur envoyée par le client est ignorée
    type: Literal["news", "announcement", "gallery", "notices", "workshop"]


class UpdatePayload(RootModel[Annotated[Union[BlogUpdate, StandardUpdate], Field(discriminator="type")]]):
    """Variante choisie selon le champ `type`."""


# --- Contacts d'urgence ---

class EmergencyCategory(str, Enum):
    fire = "Fire"
    police = "Police"
    ambulance = "Ambulance"
    electrician = "Electrician"
    plumber = "Plumber"
    other = "Other"


class EmergencyContactCreate(DocumentModel):
    name: str = Field(min_length=1, max_length=50)
    number: str = Field(min_length=1)
    category: EmergencyCategory


# --- Sondages ---

class PollCreate(DocumentModel):
    question: str = Field(min_length=1, max_length=200)
    options: List[str] = Field(min_length=2)
    expiresAt: datetime

    @field_validator("options")
    @classmethod
    def _non_empty_options(cls, value: List[str]) -> List[str]:
        if any(not option.strip() for option in value):
            raise ValueError("Options cannot be empty")
        return value


class Vote(BaseModel):
    # Les deux noms ont coexisté côté client
    optionId: int = Field(validation_alias=AliasChoices("optionId", "optionIndex"))


# --- Ateliers ---

class WorkshopCreate(DocumentModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    date: datetime
    location: str = Field(min_length=1)
    capacity: int = Field(ge=0)


# --- Feedback ---

class FeedbackCategory(str, Enum):
    general = "general"
    technical = "technical"
    feature = "feature"
    service = "service"
    other = "other"


class ResponseStatus(str, Enum):
    pending = "pending"
    viewed = "viewed"
    addressed = "addressed"


class FeedbackQuestionCreate(DocumentModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: FeedbackCategory = FeedbackCategory.general
    expiresAt: Optional[datetime] = None


class FeedbackQuestionUpdate(DocumentModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: Optional[FeedbackCategory] = None
    isActive: Optional[bool] = None
    expiresAt: Optional[datetime] = None


class FeedbackResponseCreate(DocumentModel):
    feedbackId: str = Field(min_length=1)
    response: str = Field(min_length=1)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class AdminComment(BaseModel):
    adminComment: str = Field(min_length=1)


class ResponseStatusUpdate(DocumentModel):
    status: ResponseStatus
