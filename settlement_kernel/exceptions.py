"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHAT RAISES AND WHAT DOES NOT
===============================================================================

The engines compute on whatever business data they are handed. Bad numbers,
percentages that do not add up, credit/debit imbalance and sub-cent noise
are NOT errors:

  - Unparsable or absent amounts        -> treated as 0
  - Percentages outside 0-100           -> computed mechanically
  - Credits != debits                   -> reported as unsettled investors
  - |balance| below tolerance           -> treated as settled

Only structurally invalid requests raise, and they raise a typed exception
carrying a machine-readable ``code`` and structured attributes:

    try:
        plan = service.settle_balances(balances)
    except UnknownInvestorError as e:
        api_response(code=e.code, investor=e.investor_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementError (base)
    |
    +-- InvalidInputError
    |   +-- UnknownInvestorError
    |   +-- DuplicateInvestorError
    |   +-- SelfSettlementError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_INPUT               | Structurally invalid engine request
                | UNKNOWN_INVESTOR            | Transaction names an absent investor
                | DUPLICATE_INVESTOR          | Investor appears twice in one plan call
                | SELF_SETTLEMENT             | Transaction from an investor to itself
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Settings file missing keys or invalid
"""


class SettlementError(Exception):
    """
    Base exception for all settlement errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_ERROR"


# Input-related exceptions


class InvalidInputError(SettlementError):
    """Engine request is structurally invalid."""

    code: str = "INVALID_INPUT"


class UnknownInvestorError(InvalidInputError):
    """A transaction references an investor absent from the balance set."""

    code: str = "UNKNOWN_INVESTOR"

    def __init__(self, investor_id: str):
        self.investor_id = investor_id
        super().__init__(f"Investor not present in balance set: {investor_id}")


class DuplicateInvestorError(InvalidInputError):
    """The same investor appears more than once in a single plan request."""

    code: str = "DUPLICATE_INVESTOR"

    def __init__(self, investor_id: str):
        self.investor_id = investor_id
        super().__init__(
            f"Investor {investor_id} appears more than once; aggregate balances first"
        )


class SelfSettlementError(InvalidInputError):
    """A transaction would move money from an investor to itself."""

    code: str = "SELF_SETTLEMENT"

    def __init__(self, investor_id: str):
        self.investor_id = investor_id
        super().__init__(f"Transaction from {investor_id} to itself")


# Configuration exceptions


class ConfigurationError(SettlementError):
    """Engine settings are missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid settlement configuration in {source}: {reason}")
