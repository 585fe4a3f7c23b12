"""
Cosigner Constants

Signed-format constants, curve parameters and the defaults the [engine]
and [logging] configuration sections fall back to.
"""

# ==================================================================================
# LOGGING DEFAULTS
# ==================================================================================
DEFAULT_LOG_LEVEL = 'INFO'
DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'
DEFAULT_LOG_FILE = 'logs/cosigner.log'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW ARE PART OF THE SIGNED MESSAGE FORMAT. CHANGING THEM
# INVALIDATES EVERY SIGNATURE PRODUCED BY CO-SIGNERS RUNNING THE OLD VALUES.

# ==================================================================================
# OPERATION ENCODING
# ==================================================================================
DEFAULT_NATIVE_PREFIX = 'ETHER'
DEFAULT_BATCH_PREFIX = 'ETHER-Batch'

SINGLE_OPERATION_TYPES = ['string', 'address', 'uint256', 'bytes', 'uint256', 'uint256']
# Recipients are packed as left-padded words, matching address[] in packed mode.
BATCH_OPERATION_TYPES = ['string', 'bytes32[]', 'uint256[]', 'uint256', 'uint256']

MAX_UINT256 = 2 ** 256 - 1


# ==================================================================================
# SIGNATURES (secp256k1)
# ==================================================================================
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2
SIGNATURE_LENGTH = 65
VALID_RECOVERY_IDS = (0, 1, 27, 28)


# ==================================================================================
# WALLET PARAMETERS
# ==================================================================================
# First sequence id a fresh wallet accepts. Each consumed id advances it by one.
INITIAL_SEQUENCE_ID = 1
DEFAULT_MIN_SIGNERS = 2
DEFAULT_MAX_BATCH_RECIPIENTS = 255
