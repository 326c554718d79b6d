"""
Application constants for the sign-in and profile sync client.
Defaults for remote resource names and the deep-link callback.
"""

# =============================================================================
# SUPABASE RESOURCES
# =============================================================================
PROFILES_TABLE = "profiles"
AVATAR_BUCKET = "avatars"

# Row columns
PROFILE_ID_COLUMN = "id"
PROFILE_COLUMNS = ("username", "full_name", "website", "avatar_url")

# =============================================================================
# DEEP LINK
# =============================================================================
AUTH_CALLBACK_URL = "io.supabase.user-management://login-callback"

# =============================================================================
# AVATARS
# =============================================================================
DEFAULT_AVATAR_CONTENT_TYPE = "image/jpeg"

# content type -> object key extension
AVATAR_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
}

# Remote storage cache lifetime for uploaded avatars (seconds, as a string)
AVATAR_CACHE_CONTROL = "3600"
