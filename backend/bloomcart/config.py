# config.py
# Every setting is read from the environment so the same build runs locally,
# in CI and in production. Missing provider keys simply disable that provider.
import os

# --- MongoDB ---
MONGO_URI = os.environ.get('MONGO_URI')
MONGO_DB = os.environ.get('MONGO_DB', 'bloomcart')
MONGO_PRODUCTS_COLLECTION = os.environ.get('MONGO_PRODUCTS_COLLECTION', 'products')
MONGO_ACCOUNTS_COLLECTION = os.environ.get('MONGO_ACCOUNTS_COLLECTION', 'plant_states')
MONGO_TIMEOUT_MS = int(os.environ.get('MONGO_TIMEOUT_MS', 5000))

# --- Google Gemini ---
GOOGLE_API_KEY = os.environ.get('GOOGLE_API_KEY')
GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-1.5-flash-8b')

# --- Climatiq ---
CLIMATIQ_API_KEY = os.environ.get('CLIMATIQ_API_KEY')
CLIMATIQ_BASE_URL = os.environ.get('CLIMATIQ_BASE_URL', 'https://preview.api.climatiq.io')

# Applies to every outbound provider call (Climatiq and Gemini).
PROVIDER_TIMEOUT_SECONDS = float(os.environ.get('PROVIDER_TIMEOUT_SECONDS', 5.0))

# Climatiq rates data quality on a 1 (best) to 3 (worst) scale.
DATA_QUALITY_THRESHOLD = float(os.environ.get('DATA_QUALITY_THRESHOLD', 2.5))

# --- Reward account ("plant state") ---
REWARD_START_VALUE = int(os.environ.get('REWARD_START_VALUE', 50))
REWARD_MIN_VALUE = 0
REWARD_MAX_VALUE = 100
# 0 keeps the full history.
REWARD_HISTORY_LIMIT = int(os.environ.get('REWARD_HISTORY_LIMIT', 0))

# --- Grade bands ---
# (minimum overall score, grade, reward delta, label), best band first.
# The number of bands is a product-tuning choice; nothing else in the
# pipeline assumes a particular count.
GRADE_BANDS = (
    (85.0, 'A', 15, 'Excellent - Very low environmental impact'),
    (70.0, 'B', 10, 'Good - Below average impact'),
    (55.0, 'C', 5, 'Fair - Slightly below average impact'),
    (40.0, 'D', 0, 'Average - Moderate impact'),
    (25.0, 'E', -5, 'Below average - Noticeable impact'),
    (10.0, 'F', -15, 'Poor - High environmental impact'),
    (0.0, 'G', -20, 'Very Poor - Significant environmental impact'),
)

# How many of the top bands count as a sustainable purchase.
FAVORABLE_BAND_COUNT = 2
