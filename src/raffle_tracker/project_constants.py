"""
Chain-wide parameters for the BZE burner raffles.

Event type names and REST routes are part of the chain's public interface.
Changing them here only makes sense after a chain upgrade renames them.
"""

# Fully qualified typed-event names emitted by the burner module
RAFFLE_LOST_EVENT = "bze.burner.RaffleLostEvent"
RAFFLE_WINNER_EVENT = "bze.burner.RaffleWinnerEvent"

# Attribute carrying the ticket position inside a batched contribution
TICKET_ATTRIBUTE = "ticket"

# REST routes (relative to the LCD url)
RAFFLES_PATH = "/bze/burner/raffles"
RAFFLE_WINNERS_PATH = "/bze/burner/raffle_winners"
ALL_BURNED_COINS_PATH = "/bze/burner/all_burned_coins"
MODULE_ACCOUNT_PATH = "/cosmos/auth/v1beta1/module_accounts"
TX_PATH = "/cosmos/tx/v1beta1/txs"
EPOCH_INFOS_PATH = "/bze/epochs/epoch_infos"
BURNER_PARAMS_PATH = "/bze/burner/params"

# Cache keys
RAFFLES_KEY = "burner:raffles"
RAFFLE_WINNERS_KEY = "burner:raffle_winners:"
BURNED_KEY = "burner:all_burned_coins"
MODULE_ADDRESS_KEY = "auth:module:address:"
EPOCHS_KEY = "epochs:info"
BURNER_PARAMS_KEY = "burner:params"

# Cache lifetimes (seconds)
RAFFLE_CACHE_TTL = 60  # pools change every block
RAFFLE_WINNERS_CACHE_TTL = 60
BURNED_CACHE_TTL = 60 * 60 * 4  # 4 hours
MODULE_ADDRESS_CACHE_TTL = 60 * 60 * 48  # 48 hours
EPOCHS_CACHE_TTL = 60
BURNER_PARAMS_CACHE_TTL = 60 * 60 * 4  # 4 hours

# Raffle end_at is counted in hour epochs
HOUR_EPOCH = "hour"
DAY_EPOCH = "day"
WEEK_EPOCH = "week"

# Native tokens use 6 decimals
DEFAULT_DECIMALS = 6

# Pending contribution store file format
STORE_VERSION = 1
