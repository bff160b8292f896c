from enum import Enum


class UserRole(str, Enum):
    STUDENT = "Student"
    AGENT = "Agent"
    OWNER = "Owner"
    ADMIN = "Admin"


LISTER_ROLES = {UserRole.AGENT, UserRole.OWNER, UserRole.ADMIN}


class ListingStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ListingLifecycle(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class PropertyType(str, Enum):
    BEDSITTER = "bedsitter"
    SELF_CON = "self-con"
    ONE_BEDROOM = "1-bedroom"
    TWO_BEDROOM = "2-bedroom"
    THREE_BEDROOM = "3-bedroom"


class Amenity(str, Enum):
    WATER = "Water"
    ELECTRICITY = "Light (Electricity)"
    TILES = "Tiles"
    POP_CEILING = "POP Ceiling"
    PVC_CEILING = "PVC Ceiling"
    FENCED_COMPOUND = "Fenced Compound"
    GATED_COMPOUND = "Gated Compound"
    WARDROBE = "Wardrobe"
    LANDLORD_IN_COMPOUND = "Landlord in Compound"
    LANDLORD_NOT_IN_COMPOUND = "Landlord Not in Compound"
    PRIVATE_BALCONY = "Private Balcony"
    UPSTAIRS = "Upstairs"
    DOWNSTAIRS = "Downstairs"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    USSD = "ussd"
    POS = "pos"


class PaymentProofStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    APPROVE = "approved"
    REJECT = "rejected"

    @property
    def target_status(self) -> PaymentProofStatus:
        return PaymentProofStatus(self.value)


class ProofEvent(str, Enum):
    SUBMITTED = "payment_proof.submitted"
    APPROVED = "payment_proof.approved"
    REJECTED = "payment_proof.rejected"


REFERENCE_MIN_LENGTH = 5
REFERENCE_MAX_LENGTH = 50
REJECTION_REASON_MIN_LENGTH = 10
REJECTION_REASON_MAX_LENGTH = 500
