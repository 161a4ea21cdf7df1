import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return f"postgresql://{os.getenv('DB_USER')}:{os.getenv('DB_PASS')}@{os.getenv('DB_HOST')}:{os.getenv('DB_PORT')}/{os.getenv('DB_NAME')}"


DATABASE_URL = _database_url()

# Session tokens are issued by the identity provider; we only verify them.
AUTH_PUBLIC_KEY = os.getenv("AUTH_PUBLIC_KEY")
AUTH_ALGORITHMS = [a.strip() for a in os.getenv("AUTH_ALGORITHMS", "RS256").split(",") if a.strip()]
AUTH_ISSUER = os.getenv("AUTH_ISSUER")
AUTH_AUDIENCE = os.getenv("AUTH_AUDIENCE")

# Empty means upload/file URLs are handed out relative to the API root
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "cloudinary")
STORAGE_DIR = os.getenv("STORAGE_DIR", "uploads")
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "feed_uploads")
UPLOAD_TICKET_TTL_SECONDS = int(os.getenv("UPLOAD_TICKET_TTL_SECONDS", "3600"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5MB
ALLOWED_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
