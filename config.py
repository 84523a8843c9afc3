import os
from pathlib import Path
from utils.config_utils import load_dynamic_config

# === Path Settings ===
BASE_DIR = Path(__file__).parent.absolute()
DATA_DIR = BASE_DIR / "data"
DATABASE_PATH = DATA_DIR / "access_control.db"

# Create essential directories
DATA_DIR.mkdir(exist_ok=True)

# === Database Settings ===
# Any async SQLAlchemy URL works here (e.g. mssql+aioodbc, mysql+aiomysql)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{DATABASE_PATH}")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

# === Credential Matching ===
DEFAULT_LOCATION = "Main Entrance"
FACE_PREFIX_LENGTH = 100         # Characters of the face template that are compared
FINGERPRINT_PREFIX_LENGTH = 50   # Characters of the fingerprint template that are compared
MAX_LOCATION_LENGTH = 100

# === Access Log Settings ===
ACCESS_LOG_DEFAULT_LIMIT = 50
ACCESS_LOG_MAX_LIMIT = 50
DIAGNOSTICS_HISTORY_SIZE = 100   # Recent background failures kept for operators

# === Alert Fan-out Settings ===
SITE_NAME = os.getenv("SITE_NAME", "Craig Tea Factory")
SMS_MAX_LENGTH = 160
CHANNEL_TIMEOUT_SECONDS = float(os.getenv("CHANNEL_TIMEOUT_SECONDS", "15"))
FIRE_ALERT_MESSAGE = "Fire detected in production area! Immediate evacuation required!"
MOTION_ALERT_MESSAGE = "Suspicious movement detected in restricted area - Production Floor"

# === Mail (SMTP) Settings ===
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))
ALERT_MAIL_FROM = os.getenv("ALERT_MAIL_FROM", SMTP_USERNAME or "alerts@localhost")
ALERT_MAIL_TO = os.getenv("ALERT_MAIL_TO", "security@localhost")

# === Chat Webhook Settings ===
CHAT_WEBHOOK_URL_TEMPLATE = os.getenv(
    "CHAT_WEBHOOK_URL_TEMPLATE",
    "https://api.callmebot.com/whatsapp.php?phone={phone}&text={text}&apikey={api_key}",
)
CHAT_WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("CHAT_WEBHOOK_TIMEOUT_SECONDS", "10"))

# === Real-time Broadcast ===
BROADCAST_QUEUE_SIZE = 16        # Pending events per live client before dropping

# === API & Network Settings ===
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001,http://localhost:3002",
).split(",")

# === Recipient Settings (data/config.json) ===
_dynamic_config = load_dynamic_config()
SMS_RECIPIENTS = _dynamic_config.get("SMS_RECIPIENTS", [])
CHAT_RECIPIENTS = _dynamic_config.get("CHAT_RECIPIENTS", [])
SMS_CARRIER_DOMAINS = _dynamic_config.get("SMS_CARRIER_DOMAINS", {})
DEFAULT_SMS_CARRIER = _dynamic_config.get("DEFAULT_SMS_CARRIER", "dialog")
SMS_COUNTRY_CODE = _dynamic_config.get("SMS_COUNTRY_CODE", "+94")
