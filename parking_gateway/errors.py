# parking_gateway/errors.py


class GatewayError(RuntimeError):
    code = "INTERNAL_ERROR"


class ConfigurationError(GatewayError):
    """Discount type configuration cannot be executed as stored."""

    code = "CONFIG_ERROR"


# errorCode values carried on results without an exception behind them
NETWORK_ERROR = "NETWORK_ERROR"
NOT_FOUND = "NOT_FOUND"
SESSION_ERROR = "SESSION_ERROR"
UPSTREAM_PARSE_ERROR = "UPSTREAM_PARSE_ERROR"
