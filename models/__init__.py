# -------------------------
# Enums
# -------------------------
from .enums import (
    UserRole,
    VisitorType,
    VisitorStatus,
    ChangeOperation,
)

# -------------------------
# Building / Profile Models
# -------------------------
from .building import (
    BuildingBase,
    BuildingCreate,
    BuildingRead,
    BuildingAdminRead,
)
from .profile import (
    ProfileRead,
    VerificationUpdate,
    NotificationSettingsUpdate,
    JoinRequest,
    TokenResponse,
)

# -------------------------
# Gate Models
# -------------------------
from .visitor import (
    GuestInfo,
    PreApprovedPassCreate,
    WalkInCreate,
    CodeValidation,
    VisitorDecision,
    VisitorRead,
    VisitorArrival,
)

# -------------------------
# Amenity / Booking Models
# -------------------------
from .amenity import (
    AmenityBase,
    AmenityCreate,
    AmenityRead,
)
from .booking import (
    BookingCreate,
    BookingRead,
)

# -------------------------
# Community Models
# -------------------------
from .notice import (
    NoticeCreate,
    NoticeRead,
    AchievementCreate,
    AchievementRead,
)
from .message import (
    MessageCreate,
    MessageRead,
)

# -------------------------
# Change Feed
# -------------------------
from .change import (
    ChangeEvent,
    DatabaseWebhookPayload,
)
