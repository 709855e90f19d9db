"""
Public rules of the Crystal Ball distribution.

These values define who can win and how much a payout can be.
Changing them changes the game and MUST be publicly announced.
"""

# BNB Smart Chain
CHAIN_ID = 56

# Tracked token contract (holders of this token get tickets)
TOKEN_CONTRACT = "0x352263db8c84bD5EC6a7CE28883062141BfB13C0"

# Public exclusion list (committed to repo), merged with BLACKLISTED_ADDRESSES
BLACKLIST_FILE = "blacklist.txt"

# Native coin uses 18 decimals
NATIVE_DECIMALS = 18

# Plain value transfer
GAS_LIMIT = 21000

# Balls needed for a payout
BALLS_FOR_PRIZE = 3

# Payout percentage is drawn from [MIN_PRIZE_PERCENT, 100)
MIN_PRIZE_PERCENT = 25

# Addresses seeded with one ball before weighted draws start
BOOTSTRAP_LIMIT = 50

INTERVAL_MINUTES = 30

LEADERBOARD_SIZE = 15

# Consecutive store failures before an operator alert goes out
STORE_ALERT_THRESHOLD = 3
