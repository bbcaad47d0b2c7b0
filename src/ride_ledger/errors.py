"""Validation errors raised before anything is written to the backend."""


class LedgerValidationError(ValueError):
    """Input rejected before any write; the message is shown to the user."""


class InvalidLegSelectionError(LedgerValidationError):
    """A ride must include the outbound leg, the return leg, or both."""

    def __init__(self, message: str = "Select outbound and/or return."):
        super().__init__(message)


class UnknownPartnerError(LedgerValidationError):
    """The referenced partner does not exist in the current snapshot."""

    def __init__(self, partner_id: str):
        super().__init__(f"Partner not found: {partner_id}")
        self.partner_id = partner_id
