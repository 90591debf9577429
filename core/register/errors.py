"""
Register ledger errors

Every error here is recoverable by the caller and leaves ledger state
untouched. Persistence failures are not wrapped; they propagate from the
adapter after rollback.
"""


class RegisterError(Exception):
    """Base class for register ledger errors"""

    pass


class ConflictError(RegisterError):
    """Optimistic concurrency conflict

    The caller's expected lock_version no longer matches the ledger.
    Refetch the ledger and resubmit the append.
    """

    def __init__(self, ledger_id: str, expected_version: int, actual_version: int):
        self.ledger_id = ledger_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"CONFLICT: ledger {ledger_id} is at version {actual_version}, "
            f"expected {expected_version}"
        )


class ValidationError(RegisterError):
    """Missing or malformed input

    Carries every issue found so the caller can fix them in one pass.
    """

    def __init__(self, issues: list[str] | str):
        if isinstance(issues, str):
            issues = [issues]
        self.issues = list(issues)
        super().__init__("; ".join(self.issues))


class NotFoundError(RegisterError):
    """Referenced ledger, entry or target does not exist (in this ledger)"""

    def __init__(self, kind: str, identifier: str, detail: str | None = None):
        self.kind = kind
        self.identifier = identifier
        self.detail = detail
        message = f"{kind} not found: {identifier}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RegisterConfigError(Exception):
    """registers.yaml (or a built-in definition) is invalid"""

    pass
