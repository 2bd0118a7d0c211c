import os
from dotenv import load_dotenv
load_dotenv()
# ---- Helius ----
HELIUS_API_KEY = os.environ.get("HELIUS_API_KEY")
HELIUS_BASE_URL = os.environ.get("HELIUS_BASE_URL", "https://api.helius.xyz/v0")

HELIUS_REQUESTS_PER_SEC = float(os.environ.get("HELIUS_REQUESTS_PER_SEC", "5.0"))
HELIUS_TIMEOUT_SEC = 15
HELIUS_MAX_RETRIES = 3

# ---- Response cache ----
CACHE_MAX_ENTRIES = int(os.environ.get("SOLVIZ_CACHE_MAX_ENTRIES", "512"))
CACHE_TTL_SEC = float(os.environ.get("SOLVIZ_CACHE_TTL_SEC", "300"))

# ---- Fetch limits ----
TX_LIMIT_DEFAULT = 50
TX_LIMIT_MAX = 100
SEARCH_HISTORY_SIZE = 10

LAMPORTS_PER_SOL = 1_000_000_000

# ----- Classification heuristics -----
# Untuned; override through the environment.
HIGH_ACTIVITY_CONNECTIONS = int(os.environ.get("SOLVIZ_HIGH_ACTIVITY_CONNECTIONS", "3"))
EXCHANGE_BALANCE_LAMPORTS = int(os.environ.get("SOLVIZ_EXCHANGE_BALANCE_LAMPORTS", str(10 * LAMPORTS_PER_SOL)))
USER_BALANCE_LAMPORTS = int(os.environ.get("SOLVIZ_USER_BALANCE_LAMPORTS", str(1 * LAMPORTS_PER_SOL)))
PROTOCOL_DOMINANCE_RATIO = float(os.environ.get("SOLVIZ_PROTOCOL_DOMINANCE_RATIO", "0.5"))
EXCHANGE_SWAP_COUNT = int(os.environ.get("SOLVIZ_EXCHANGE_SWAP_COUNT", "5"))

# Display fallbacks (lamports)
DEFAULT_NODE_BALANCE = 1000
PLACEHOLDER_NODE_BALANCE = 500

# ----- Force layout -----
CANVAS_WIDTH = 600
CANVAS_HEIGHT = 400

LINK_DISTANCE_SCALE = 100.0
LINK_DISTANCE_MIN = 50.0
CHARGE_ROOT = -500.0
CHARGE_DEFAULT = -200.0
CHARGE_DISTANCE_MIN = 1.0
CENTER_STRENGTH = 0.1
COLLISION_PADDING = 2.0
COLLISION_STRENGTH = 1.0

RADIUS_BALANCE_DIVISOR = 5000.0
RADIUS_BASE = 5.0
RADIUS_ROOT_BONUS = 5.0
RADIUS_PROTOCOL_BONUS = 3.0

ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)
ALPHA_DRAG_TARGET = 0.3
VELOCITY_DECAY = 0.4

# Above this node count the charge force switches to Barnes-Hut.
BARNES_HUT_THRESHOLD = int(os.environ.get("SOLVIZ_BARNES_HUT_THRESHOLD", "300"))
BARNES_HUT_THETA = 0.9

ZOOM_MIN = 0.2
ZOOM_MAX = 5.0

LAYOUT_SEED = 7
