"""Marketplace ledger configuration constants.

Keep this file aligned with the constants of the deployed
`VerifiableMarketplace` contract.
"""

# Units
WEI_DECIMALS = 18
WEI_PER_ETHER = 10**WEI_DECIMALS
MAX_UINT256 = 2**256 - 1

# Identities
ADDRESS_SIZE = 20
ZERO_ADDRESS = bytes(ADDRESS_SIZE)
PROOF_HASH_SIZE = 32

# Fees
BPS_DENOMINATOR = 10_000
DEFAULT_PLATFORM_FEE_BPS = 250  # 2.5%
MAX_FEE_BPS = 1_000  # 10%
MAX_AGENT_FEE_BPS = 500  # 5%

# Payload limits
MAX_LISTING_ID_BYTES = 0xFFFF
MAX_METADATA_URI_BYTES = 0xFFFF

# Chain / network
CHAIN_ID_BASE_SEPOLIA = 84532
CHAIN_ID_LOCAL = 31337
