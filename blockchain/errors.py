"""
Contract Client Errors
Failure taxonomy shared by resolution, reads and writes
"""


class ContractClientError(Exception):
    """Base class for every error raised by the contract client"""


class InvalidAddressError(ContractClientError):
    """Address string is not a syntactically valid chain address"""


class AbiMismatchError(ContractClientError):
    """ABI descriptor is malformed or does not match the deployed bytecode"""


class MethodNotFoundError(ContractClientError):
    """Method is absent from the descriptor for the requested operation kind"""


class ArgumentTypeError(ContractClientError):
    """Arguments do not match the method's declared ABI types"""


class NetworkError(ContractClientError):
    """Transport failure talking to the node (transient, retried for reads only)"""


class InsufficientFundsError(ContractClientError):
    """Sender cannot pay for gas and value of the attempted write"""


class TransactionRejectedError(ContractClientError):
    """Node or contract refused the operation (revert, bad nonce, ...)"""
