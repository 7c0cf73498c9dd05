import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = os.getenv("DB_SCHEMA", "guest_messaging")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",") if origin.strip()
]

# Inbound webhooks (HTTP Basic) and operator surface (X-API-Key)
WEBHOOK_USERNAME = os.getenv("WEBHOOK_USERNAME", "")
WEBHOOK_PASSWORD = os.getenv("WEBHOOK_PASSWORD", "")
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "")

# Property clock defaults
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Tokyo")
DEFAULT_CHECK_IN_TIME = os.getenv("DEFAULT_CHECK_IN_TIME", "15:00")
DEFAULT_CHECK_OUT_TIME = os.getenv("DEFAULT_CHECK_OUT_TIME", "11:00")
AFTER_DEPARTURE_SEND_TIME = os.getenv("AFTER_DEPARTURE_SEND_TIME", "10:00")
ELAPSED_GRACE_MINUTES = int(os.getenv("ELAPSED_GRACE_MINUTES", "5"))

# Dispatch sweep
DISPATCH_INTERVAL_SECONDS = int(os.getenv("DISPATCH_INTERVAL_SECONDS", "60"))
DISPATCH_BATCH_SIZE = int(os.getenv("DISPATCH_BATCH_SIZE", "50"))
DISPATCH_CONCURRENCY = int(os.getenv("DISPATCH_CONCURRENCY", "4"))
CLAIM_LEASE_SECONDS = int(os.getenv("CLAIM_LEASE_SECONDS", "600"))

# Channel providers. A channel with missing credentials is left unconfigured.
WHATSAPP_ACCESS_TOKEN = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
WHATSAPP_API_VERSION = os.getenv("WHATSAPP_API_VERSION", "v19.0")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", "")

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "")

OTA_API_TOKEN = os.getenv("OTA_API_TOKEN", "")
OTA_API_BASE_URL = os.getenv("OTA_API_BASE_URL", "https://beds24.com/api/v2")

CHANNEL_TIMEOUT_SECONDS = float(os.getenv("CHANNEL_TIMEOUT_SECONDS", "10"))

# Blob store for rehosted inbound attachments (Supabase-compatible storage API)
BLOB_STORE_URL = os.getenv("BLOB_STORE_URL", "")
BLOB_STORE_API_KEY = os.getenv("BLOB_STORE_API_KEY", "")
BLOB_STORE_BUCKET = os.getenv("BLOB_STORE_BUCKET", "message-attachments")
