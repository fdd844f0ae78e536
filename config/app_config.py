import os
from dotenv import load_dotenv

load_dotenv()

# Auth
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-here")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Matching
MATCH_RESULT_LIMIT = int(os.getenv("MATCH_RESULT_LIMIT", 20))
CAMPAIGN_SEARCH_LIMIT = int(os.getenv("CAMPAIGN_SEARCH_LIMIT", 50))
CAMPAIGN_VIEW_DEDUP_SECONDS = int(os.getenv("CAMPAIGN_VIEW_DEDUP_SECONDS", 1800))  # 30 minutes

# Chat rate limiting (messages per window, per sender)
CHAT_RATE_LIMIT_MAX = int(os.getenv("CHAT_RATE_LIMIT_MAX", 10))
CHAT_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("CHAT_RATE_LIMIT_WINDOW_SECONDS", 60))
RATE_LIMIT_WARNING_SECONDS = int(os.getenv("RATE_LIMIT_WARNING_SECONDS", 5))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", 5000))

# Delivery-delay queue
DELIVERY_RETRY_BASE_SECONDS = float(os.getenv("DELIVERY_RETRY_BASE_SECONDS", 5))
DELIVERY_RETRY_MAX_SECONDS = float(os.getenv("DELIVERY_RETRY_MAX_SECONDS", 60))

# Moderation
MODERATION_FLAG_SEVERITY = int(os.getenv("MODERATION_FLAG_SEVERITY", 3))
