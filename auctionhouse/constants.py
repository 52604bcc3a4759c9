"""
Auction House Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast

from dotenv import dotenv_values
from eth_utils import keccak, to_checksum_address

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW ARE PART OF THE PROGRAM ABI. CHANGING ANY OF THEM MOVES EVERY DERIVED
# ADDRESS AND INVALIDATES EVERY PERSISTED RECORD.

# ==================================================================================
# PROGRAM IDENTIFIERS
# ==================================================================================
def _program_id(label: str) -> str:
    return to_checksum_address(keccak(text=label)[-20:])


SYSTEM_PROGRAM_ID = _program_id("auctionhouse:system")
TOKEN_PROGRAM_ID = _program_id("auctionhouse:token")
ASSOCIATED_TOKEN_PROGRAM_ID = _program_id("auctionhouse:associated-token")
METADATA_PROGRAM_ID = _program_id("auctionhouse:metadata")
MARKETPLACE_PROGRAM_ID = _program_id("auctionhouse:marketplace")

# Sentinel mint standing for the ledger's native currency
NATIVE_MINT = _program_id("auctionhouse:native-mint")

PDA_MARKER = b"ProgramDerivedAddress"


# ==================================================================================
# DERIVATION SEEDS
# ==================================================================================
PREFIX = b"marketplace"
TREASURY = b"treasury"
LISTING = b"listing"
OFFER = b"offer"
METADATA_PREFIX = b"metadata"


# ==================================================================================
# ARITHMETIC BOUNDS
# ==================================================================================
BASIS_POINTS = 10_000
MAX_BASIS_POINTS = 10_000
MAX_SHARE_PERCENT = 100
MAX_U16 = 2**16 - 1
MAX_U64 = 2**64 - 1
MAX_U128 = 2**128 - 1


# ==================================================================================
# LEDGER PARAMETERS
# ==================================================================================
LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_LAMPORTS_PER_BYTE_YEAR = 3480
DEFAULT_EXEMPTION_THRESHOLD = 2
ACCOUNT_STORAGE_OVERHEAD = 128

TOKEN_ACCOUNT_SPACE = 165
MINT_ACCOUNT_SPACE = 82
METADATA_ACCOUNT_SPACE = 679

# Metadata oracle creator limit
MAX_CREATOR_LIMIT = 5


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
