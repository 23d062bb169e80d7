"""Custom exception classes for the dispatch optimizer.

Configuration problems are detected before the dynamic programming pass runs.
An unreachable terminal target is reported after the backward pass instead of
returning the infeasibility sentinel as revenue.
"""


class DispatchException(Exception):
    """Base exception for all dispatch optimizer components."""
    pass


class InvalidConfigurationError(DispatchException):
    """Raised when battery settings or inputs cannot describe a valid problem."""

    def __init__(self, field=None, message=None):
        if message is None:
            if field:
                message = f"Invalid configuration value for {field}"
            else:
                message = "Invalid dispatch configuration"
        super().__init__(message)
        self.field = field


class InfeasibleHorizonError(DispatchException):
    """Raised when the terminal SoC target cannot be reached within the horizon."""

    def __init__(self, target_soc=None, initial_soc=None, message=None):
        if message is None:
            message = (
                f"Terminal SoC {target_soc} is unreachable from initial SoC "
                f"{initial_soc} within the price horizon"
            )
        super().__init__(message)
        self.target_soc = target_soc
        self.initial_soc = initial_soc
