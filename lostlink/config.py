import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lostlink.db")

JWT_SECRET = os.getenv("JWT_SECRET", "your_really_long_secret_key")
JWT_ALGORITHM = "HS256"

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Scorer (Gemini)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
SCORER_TIMEOUT_SECONDS = float(os.getenv("SCORER_TIMEOUT_SECONDS", "30"))

# Vision
GOOGLE_CLOUD_VISION_API_KEY = os.getenv("GOOGLE_CLOUD_VISION_API_KEY")
VISION_TIMEOUT_SECONDS = float(os.getenv("VISION_TIMEOUT_SECONDS", "15"))

# Object storage (Cloudflare R2 through the S3 API)
R2_BUCKET = os.getenv("R2_BUCKET")
CLOUDFLARE_ACCOUNT_ID = os.getenv("CLOUDFLARE_ACCOUNT_ID")
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")

# Matching rules
MAX_MATCH_DISTANCE_KM = 40
MATCH_SCORE_THRESHOLD = 70
NOTIFICATION_COOLDOWN_SECONDS = 5.0
