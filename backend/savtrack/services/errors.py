"""Domain errors raised by the service layer; the app maps them to HTTP codes."""


class SavError(Exception):
    """Base class for service-layer errors."""


class CaseNotFoundError(SavError):
    pass


class UnknownStatusError(SavError):
    def __init__(self, status: str):
        super().__init__(f"Unknown SAV status: {status}")
        self.status = status


class StatusTransitionError(SavError):
    """The status change could not be persisted; nothing was committed."""


class CustomerHasActiveCasesError(SavError):
    def __init__(self, active_count: int):
        super().__init__(f"Customer still has {active_count} active SAV case(s)")
        self.active_count = active_count


class CustomerNotFoundError(SavError):
    pass


class PartNotFoundError(SavError):
    pass


class UnknownTypeError(SavError):
    def __init__(self, sav_type: str):
        super().__init__(f"Unknown SAV type: {sav_type}")
        self.sav_type = sav_type


class CaseLimitReachedError(SavError):
    def __init__(self, max_active_cases: int):
        super().__init__(f"Active SAV limit reached ({max_active_cases})")
        self.max_active_cases = max_active_cases


class InvalidTakeoverError(SavError):
    """A partial takeover needs a non-negative takeover_amount."""
