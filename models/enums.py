from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# USER ROLE
# -----------------------------------------------------
class UserRole(BaseStrEnum):
    """Portal role stored on the profile row."""

    SUPER_ADMIN = "SUPER_ADMIN"
    BUILDING_ADMIN = "BUILDING_ADMIN"
    RESIDENT = "RESIDENT"
    SECURITY = "SECURITY"


# -----------------------------------------------------
# VISITOR TYPE
# -----------------------------------------------------
class VisitorType(BaseStrEnum):
    PRE_APPROVED = "PRE_APPROVED"
    WALK_IN = "WALK_IN"


# -----------------------------------------------------
# VISITOR STATUS
# -----------------------------------------------------
class VisitorStatus(BaseStrEnum):
    """Gate-pass workflow state."""

    PENDING = "PENDING"                    # pre-approved, code not used yet
    WAITING_APPROVAL = "WAITING_APPROVAL"  # walk-in waiting on the resident
    ENTERED = "ENTERED"
    EXITED = "EXITED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (VisitorStatus.EXITED, VisitorStatus.REJECTED)


# -----------------------------------------------------
# CHANGE FEED OPERATION
# -----------------------------------------------------
class ChangeOperation(BaseStrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    # Subscriber fell behind; re-fetch instead of patching
    RESYNC = "resync"
