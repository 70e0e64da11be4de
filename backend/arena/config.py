import os

def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

# Author of lifecycle-generated chat entries.
SYSTEM_PROFILE_ID = "00000000-0000-0000-0000-000000000000"

INVITATION_TTL_HOURS = _int_env("INVITATION_TTL_HOURS", 24)
VETO_SESSION_TTL_SECONDS = _float_env("VETO_SESSION_TTL_SECONDS", 3600.0)
CHAT_MESSAGE_MAX_LENGTH = 1000

RIOT_API_KEY = os.getenv("RIOT_API_KEY")
STEAM_API_KEY = os.getenv("STEAM_API_KEY")
FACEIT_API_KEY = os.getenv("FACEIT_API_KEY")

GAME_API_MAX_RETRIES = _int_env("GAME_API_MAX_RETRIES", 3)
GAME_API_RETRY_DELAY = _float_env("GAME_API_RETRY_DELAY", 1.0)

RIOT_DEFAULT_REGION = "na1"
RIOT_REGIONS = (
    "na1", "euw1", "kr", "eun1", "br1", "jp1", "la1", "la2", "oc1", "tr1", "ru",
)
STEAM_BASE_URL = "https://api.steampowered.com"
FACEIT_BASE_URL = "https://open.faceit.com/data/v4"
