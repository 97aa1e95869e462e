from cascade_be.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.VALIDATION_ERROR,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class NotFoundException(AppException):
    def __init__(self, status_message="Resource not found", details=None, action_button=None, error_code=ErrorCodes.NOT_FOUND):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=404,
            details=details,
            action_button=action_button
        )

class InsufficientFundsException(AppException):
    def __init__(self, status_message="Insufficient funds", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INSUFFICIENT_FUNDS,
            status_message=status_message,
            status_code=400,
            details=details,
            action_button=action_button
        )

class SpinInProgressException(AppException):
    def __init__(self, status_message="A spin is already in progress", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.SPIN_IN_PROGRESS,
            status_message=status_message,
            status_code=409,
            details=details,
            action_button=action_button
        )

class GameLogicException(AppException):
    def __init__(self, status_message="Game logic error", details=None, action_button=None, status_code=400,
                 error_code=ErrorCodes.GAME_LOGIC_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=status_code, # Can be 400 or 500
            details=details,
            action_button=action_button
        )

class PhaseOrderException(GameLogicException):
    """A spin phase was requested before the previous one was acknowledged."""
    def __init__(self, status_message="Spin phase requested out of order", details=None):
        super().__init__(
            status_message=status_message,
            details=details,
            status_code=409,
            error_code=ErrorCodes.PHASE_ORDER_ERROR
        )

class GridInvariantViolation(GameLogicException):
    """Raised by internal grid checks. Never expected in correct operation."""
    def __init__(self, status_message="Grid invariant violated", details=None):
        super().__init__(
            status_message=status_message,
            details=details,
            status_code=500,
            error_code=ErrorCodes.GRID_INVARIANT_VIOLATION
        )

class RandomSourceUnavailableException(AppException):
    def __init__(self, status_message="Random source could not produce a value", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.RANDOM_SOURCE_UNAVAILABLE,
            status_message=status_message,
            status_code=503,
            details=details,
            action_button=action_button
        )

class InternalServerErrorException(AppException):
    def __init__(self, status_message="Internal server error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_SERVER_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )
