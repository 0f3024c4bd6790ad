class SomniaMcpError(Exception):
    """Base class for every error raised by the service layer."""


class ConfigurationError(SomniaMcpError, ValueError):
    pass


class ValidationError(SomniaMcpError, ValueError):
    pass


class InvalidRangeError(ValidationError):
    pass


class RangeTooLargeError(ValidationError):
    pass


class InvalidLimitError(ValidationError):
    pass


class InvalidAddressError(ValidationError):
    pass


class PreconditionError(SomniaMcpError):
    pass


class MissingSignerError(PreconditionError):
    pass


class NotFoundError(SomniaMcpError):
    pass


class BlockNotFoundError(NotFoundError):
    pass


class TransactionNotFoundError(NotFoundError):
    pass


class ReceiptNotFoundError(NotFoundError):
    pass


class TransportError(SomniaMcpError):
    pass


class RpcError(TransportError):
    def __init__(self, message: str, code=None, data=None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class ExplorerError(TransportError):
    pass
