"""
Protocol constants for confidential transactions.
All amounts are in picoMOB (1 MOB = 10^12 picoMOB) unless a token id says otherwise.
"""

# Largest value representable in an unsigned 64-bit field
U64_MAX = 2**64 - 1

# Token id of the native currency
MOB_TOKEN_ID = 0

MILLIMOB_TO_PICOMOB = 1_000_000_000
PICOMOB_PER_MOB = 1_000_000_000_000

# Minimum fee, 0.0004 MOB
MINIMUM_FEE = 400 * MILLIMOB_TO_PICOMOB

# Ring and transaction shape
RING_SIZE = 11
MAX_INPUTS = 16
MAX_OUTPUTS = 16

# Tombstone may be at most this many blocks past the current block
MAX_TOMBSTONE_BLOCKS = 20_160

# Memo wire sizes
MEMO_TYPE_BYTES_LEN = 2
MEMO_DATA_LEN = 64
ENCRYPTED_MEMO_LEN = MEMO_TYPE_BYTES_LEN + MEMO_DATA_LEN

# Masked token id length when present (absent encodes token id 0)
MASKED_TOKEN_ID_LEN = 8

# Fog hint ciphertext: ephemeral point (33) + masked payload (33) + mac (16)
ENCRYPTED_FOG_HINT_LEN = 82

# Short address hash length used inside memos
SHORT_ADDRESS_HASH_LEN = 16
