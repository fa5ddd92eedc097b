from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class UserRole(str, Enum):
    CUSTOMER = "customer"
    CLEANER = "cleaner"
    ADMIN = "admin"

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Forward-only: completed and cancelled are terminal
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in BOOKING_TRANSITIONS[BookingStatus(current)]


class Row(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Profile(Row):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class User(Row):
    id: str
    email: str
    role: UserRole = UserRole.CUSTOMER
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Embedded one-to-one relation, PostgREST names it after the table
    profile: Optional[Profile] = Field(default=None, validation_alias=AliasChoices("profiles", "profile"))


class Booking(Row):
    id: str
    customer_id: str
    cleaner_id: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    service_type: str
    date: datetime
    duration: int
    price: int
    address: str
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Content(Row):
    id: str
    type: str  # 'city', 'service', 'blog'
    slug: str
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Optional[Dict[str, Any]] = None
    status: str = "draft"


class City(Row):
    id: str
    name: str
    slug: str
    is_active: bool = True
    content: Optional[Dict[str, Any]] = None
    seo: Optional[Dict[str, Any]] = None


class Service(Row):
    id: str
    name: str
    slug: str
    description: str = ""
    price: str = ""
    features: Optional[List[str]] = None
    is_active: bool = True
    content: Optional[Dict[str, Any]] = None
    seo: Optional[Dict[str, Any]] = None
