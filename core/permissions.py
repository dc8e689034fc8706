from models.enums import UserRole

# ============================================
# CENTRALIZED ROLE → PERMISSIONS MAP
# ============================================
# Every UserRole member must have an entry (enforced in tests).
ROLE_PERMISSIONS = {

    # =====================================================
    # SUPER ADMIN - Full access to everything
    # =====================================================
    UserRole.SUPER_ADMIN: [
        "*",

        # Explicit: only the super admin provisions buildings
        "buildings:write",
    ],

    # =====================================================
    # BUILDING ADMIN - manages one building
    # =====================================================
    UserRole.BUILDING_ADMIN: [
        "buildings:read",

        # Resident verification
        "residents:read", "residents:verify",

        # Bulletin board
        "notices:read", "notices:write",
        "achievements:read", "achievements:write",

        # Amenities & reservations
        "amenities:read", "amenities:write",
        "bookings:read", "bookings:write", "bookings:manage",

        # Gate log (read only)
        "visitors:read",

        "messages:read", "messages:write",
        "realtime:subscribe",
    ],

    # =====================================================
    # RESIDENT - only once verified by the building admin
    # =====================================================
    UserRole.RESIDENT: [
        "buildings:read",
        "notices:read",
        "achievements:read",
        "amenities:read",
        "bookings:read", "bookings:write",

        # Own unit only
        "visitors:read", "visitors:invite", "visitors:decide",

        "messages:read", "messages:write",
        "realtime:subscribe",
    ],

    # =====================================================
    # SECURITY - gate terminal
    # =====================================================
    UserRole.SECURITY: [
        "buildings:read",
        "notices:read",
        "visitors:read", "visitors:gate",
        "realtime:subscribe",
    ],
}

# Permissions an unverified resident keeps
UNVERIFIED_PERMISSIONS = ["buildings:read"]
