"""Application configuration.

All settings can be overridden via environment variables. A `.env` file in
the working directory is loaded first when present.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# --- Logging ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# --- OpenAI ---
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
ANALYSIS_MODEL = os.environ.get("ANALYSIS_MODEL", "gpt-4.1")

# --- Live coach ---
LIVE_MODEL = os.environ.get("LIVE_MODEL", "gpt-realtime")
LIVE_LANGUAGE_CODE = os.environ.get("LIVE_LANGUAGE_CODE", "en-US")
LIVE_VOICE_NAME = os.environ.get("LIVE_VOICE_NAME", "alloy")
LIVE_CONNECT_TIMEOUT = float(os.environ.get("LIVE_CONNECT_TIMEOUT", "30"))
SSE_KEEPALIVE_SECONDS = float(os.environ.get("SSE_KEEPALIVE_SECONDS", "15"))

# --- Analysis jobs ---
VIDEO_FRAME_SAMPLES = int(os.environ.get("VIDEO_FRAME_SAMPLES", "8"))
FRAME_MAX_SIZE = int(os.environ.get("FRAME_MAX_SIZE", "768"))
MAX_ANALYSIS_IMAGES = int(os.environ.get("MAX_ANALYSIS_IMAGES", "3"))

# --- Object storage (Cloudflare R2, S3 compatible) ---
R2_ACCOUNT_ID = os.environ.get("R2_ACCOUNT_ID", "")
R2_ACCESS_KEY_ID = os.environ.get("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.environ.get("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET_NAME = os.environ.get("R2_BUCKET_NAME", "")
R2_PUB_URL = os.environ.get("R2_PUB_URL", "").rstrip("/")
R2_CUSTOM_DOMAIN = os.environ.get("R2_CUSTOM_DOMAIN", "")
UPLOAD_URL_TTL = int(os.environ.get("UPLOAD_URL_TTL", "300"))
