"""
Persisted key names.

These strings are stored on user devices and must stay stable across SDK
versions. The legacy referral keys keep their historical spelling.
"""

# Legacy two-key referral link (read for migration, removed on clear)
LEGACY_REFERRAL_CODE_KEY = "APPOAUR_SDK_REFERRAL_CODE"
LEGACY_REFERRED_BY_USER_ID_KEY = "APPOAUR_SDK_REFERRED_BY_USER_ID"

# Single-record referral link: JSON {"code": ..., "referred_by_user_id": ...}
REFERRAL_LINK_KEY = "APPOSAUR_SDK_REFERRAL_LINK"

# Registered user, always written together
APP_USER_ID_KEY = "APPOAUR_SDK_USER_ID"
APP_USER_CODE_KEY = "APPOAUR_SDK_USER_CODE"

# JSON array of transaction ids already reported to the backend
PROCESSED_TRANSACTIONS_KEY = "APPOSAUR_SDK_PROCESSED_TRANSACTIONS"
