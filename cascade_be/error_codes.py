class ErrorCodes:
    GENERIC_ERROR = "GENERIC_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    # Player / economy
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

    # Spin transaction
    SPIN_IN_PROGRESS = "SPIN_IN_PROGRESS"
    PHASE_ORDER_ERROR = "PHASE_ORDER_ERROR"
    GAME_LOGIC_ERROR = "GAME_LOGIC_ERROR"
    GRID_INVARIANT_VIOLATION = "GRID_INVARIANT_VIOLATION"
    RANDOM_SOURCE_UNAVAILABLE = "RANDOM_SOURCE_UNAVAILABLE"
