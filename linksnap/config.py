import os
from datetime import timedelta, timezone

# ---- DynamoDB ----
URLS_TABLE = os.environ.get("URLS_TABLE", "url-shortener-urls")
CLICKS_TABLE = os.environ.get("CLICKS_TABLE", "url-shortener-clicks")

# memory | dynamodb
STORE_BACKEND = os.environ.get("STORE_BACKEND", "memory").lower().strip()
SEED_MOCK_DATA = os.environ.get("SEED_MOCK_DATA", "true").lower() == "true"

# ---- Shorten / redirect ----
BASE_URL = os.environ.get("BASE_URL", "").rstrip("/")  # e.g. https://short.url
SHORT_CODE_LEN = int(os.environ.get("SHORT_CODE_LEN", "6"))
MAX_RETRIES = int(os.environ.get("MAX_RETRIES", "5"))
REDIRECT_STATUS = int(os.environ.get("REDIRECT_STATUS", "301"))

# ---- Stats ----
TOP_REFERRERS = int(os.environ.get("TOP_REFERRERS", "6"))
POPULAR_URLS_LIMIT = int(os.environ.get("POPULAR_URLS_LIMIT", "10"))
REPORT_TZ = timezone(timedelta(hours=int(os.environ.get("REPORT_UTC_OFFSET_HOURS", "9"))))  # KST

# ---- Admin ----
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@linksnap.com")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")
SESSION_MAX_AGE = 60 * 60 * 24

# ---- Bedrock ----
BEDROCK_MODEL_ID = os.getenv("BEDROCK_MODEL_ID", "apac.amazon.nova-lite-v1:0")
BEDROCK_REGION = os.getenv("BEDROCK_REGION", os.getenv("AWS_REGION", "ap-northeast-2"))
BEDROCK_MAX_TOKENS = int(os.getenv("BEDROCK_MAX_TOKENS", "1200"))
