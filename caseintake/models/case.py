"""Case intake data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceType(Enum):
    """Service classifications offered on the intake form."""

    MOLD = "mold"
    WATER_DAMAGE = "water-damage"
    ROOF = "roof"

    @classmethod
    def label_for(cls, value: Optional[str]) -> str:
        """
        Display label for a service type value.

        Known values map to their enum; anything else is free-form text and
        is shown upper-cased as entered.
        """
        text = (value or "").strip()
        if not text:
            return "NOT SPECIFIED"
        try:
            return cls(text.lower()).value.replace("-", " ").upper()
        except ValueError:
            return text.upper()


# Wire (camelCase) name -> CaseRecord attribute
_WIRE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "email": "email",
    "address": "address",
    "city": "city",
    "state": "state",
    "zipCode": "zip_code",
    "serviceType": "service_type",
    "description": "description",
    "insuranceCompany": "insurance_company",
    "policyNumber": "policy_number",
    "claimNumber": "claim_number",
}


@dataclass
class CaseRecord:
    """
    Customer details collected by the intake form.

    Every field is a string; blanks are empty strings, never None.

    Attributes:
        first_name: Customer first name (required at submission)
        last_name: Customer last name (required at submission)
        phone: Contact phone number (required at submission)
        email: Contact email address
        address: Street address of the damaged property
        city: City of the property
        state: State of the property
        zip_code: Postal code of the property
        service_type: ServiceType value or free-form text
        description: Free-text damage description
        insurance_company: Insurer name
        policy_number: Insurance policy number
        claim_number: Insurance claim number
    """
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    service_type: str = ""
    description: str = ""
    insurance_company: str = ""
    policy_number: str = ""
    claim_number: str = ""

    REQUIRED_FIELDS = ("first_name", "last_name", "phone")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CaseRecord":
        """
        Build a record from camelCase wire keys or snake_case attribute names.

        Unknown keys are ignored and None becomes an empty string.
        """
        values: Dict[str, str] = {}
        for key, value in (data or {}).items():
            attr = _WIRE_FIELDS.get(key, key)
            if attr in _WIRE_FIELDS.values():
                values[attr] = "" if value is None else str(value).strip()
        return cls(**values)

    def missing_required(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name).strip()]

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()

    @property
    def service_label(self) -> str:
        return ServiceType.label_for(self.service_type)

    @property
    def has_insurance(self) -> bool:
        return any(
            value.strip()
            for value in (self.insurance_company, self.policy_number, self.claim_number)
        )


@dataclass
class UploadedImage:
    """
    A compressed photo ready for storage and embedding.

    Attributes:
        image_id: Random token identifying the photo within a session
        data_uri: Compressed encoding (``data:image/jpeg;base64,...``)
        filename: Original filename
        original_size: Size of the source file in bytes
        encoded_size: Size of the compressed payload in bytes
        width: Width of the compressed image in pixels
        height: Height of the compressed image in pixels
    """
    image_id: str
    data_uri: str
    filename: str
    original_size: int
    encoded_size: int
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class StoredImage:
    """Server-side copy of a compressed photo, keyed by ``{case_id}_{index}``."""
    data_uri: str
    filename: str
    size: int
    stored_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class EmbeddedImage:
    """An image as it appears in the notification gallery."""
    data_uri: str
    filename: str
    size: int

    @property
    def size_kb(self) -> int:
        return round(self.size / 1024)


@dataclass(frozen=True)
class NotificationPayload:
    """
    Everything the dispatcher needs to notify staff about one case.

    Attributes:
        record: Validated customer record
        case_id: Case identifier shown to staff and customer
        image_count: Number of embedded images
        images: Embedded images in upload order
        submitted_at: Time the payload was assembled
    """
    record: CaseRecord
    case_id: str
    image_count: int
    images: Tuple[EmbeddedImage, ...] = ()
    submitted_at: datetime = field(default_factory=utcnow)


@dataclass
class DeliveryReceipt:
    """Result of a successful delivery."""
    message_id: str
    recipients: List[str]
    channel: str
    sent_at: datetime = field(default_factory=utcnow)
    test: bool = False
