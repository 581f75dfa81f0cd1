import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./securefilesync.db")

# Same ceiling the browser upload form enforces (100 MB)
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))
STORAGE_QUOTA_BYTES = int(os.getenv("STORAGE_QUOTA_BYTES", str(1024 * 1024 * 1024)))

# Random bytes per share token, never below 128 bits
SHARE_TOKEN_BYTES = max(16, int(os.getenv("SHARE_TOKEN_BYTES", "32")))
TOKEN_ISSUE_ATTEMPTS = int(os.getenv("TOKEN_ISSUE_ATTEMPTS", "5"))

PASSWORD_HASH_MEMORY_KIB = int(os.getenv("PASSWORD_HASH_MEMORY_KIB", "65536"))
PASSWORD_HASH_ROUNDS = int(os.getenv("PASSWORD_HASH_ROUNDS", "3"))

EXPIRING_SOON_DAYS = int(os.getenv("EXPIRING_SOON_DAYS", "3"))

DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
