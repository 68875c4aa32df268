# Environment-driven configuration for the NyayChain API

import os
import logging
from pathlib import Path

from dotenv import load_dotenv

# Try multiple .env locations: next to this package, one level up, then cwd
_package_dir = Path(__file__).resolve().parent
_env_candidates = [
    _package_dir / ".env",
    _package_dir.parent / ".env",
    Path.cwd() / ".env",
]
for _env_path in _env_candidates:
    if _env_path.is_file():
        load_dotenv(_env_path, override=True)
        break
else:
    load_dotenv(override=True)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "nyaychain")

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "")
if not JWT_SECRET or len(JWT_SECRET) < 32:
    raise RuntimeError(
        "FATAL: JWT_SECRET must be set in the environment and be at least 32 characters. "
        "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
    )
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", 168))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@nyaychain.com").lower()
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(_package_dir.parent / "uploads")))
MAX_IMAGES = int(os.getenv("MAX_IMAGES", 5))
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", 5 * 1024 * 1024))
ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173,http://127.0.0.1:3000",
    ).split(",") if o.strip()
]

# ---------------------------------------------------------------------------
# Lifecycle / ledger
# ---------------------------------------------------------------------------
ENFORCE_STATUS_GRAPH = _env_bool("ENFORCE_STATUS_GRAPH")
LEDGER_DELAY_SECONDS = float(os.getenv("LEDGER_DELAY_SECONDS", 0))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
