from typing import Optional


class FleetError(Exception):
    """Base class for domain errors raised by the fleet services."""

    code = "fleet_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FleetError):
    code = "validation_error"

    def __init__(self, field: Optional[str], message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "field": self.field, "message": self.message}


class NotFound(FleetError):
    code = "not_found"


class InvalidType(FleetError):
    code = "invalid_type"


class NotAvailable(FleetError):
    code = "not_available"


class AlreadyLinked(FleetError):
    code = "already_linked"


class VehicleSold(FleetError):
    code = "vehicle_sold"


class PermissionDenied(FleetError):
    code = "permission_denied"


class PartialCommitError(FleetError):
    """
    The first write of a sale was applied and a later one failed.

    The applied writes are not rolled back; the records named in
    ``applied_writes`` stay as written and ``failed_write`` needs manual
    follow-up.
    """

    code = "partial_commit"

    def __init__(self, failed_write: str, applied_writes: list[str], cause: Exception) -> None:
        applied = ", ".join(applied_writes) or "nenhuma"
        super().__init__(
            f"Falha ao gravar {failed_write} apos gravar {applied}. "
            "Venda parcialmente registrada: conferir manualmente."
        )
        self.failed_write = failed_write
        self.applied_writes = list(applied_writes)
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "failed_write": self.failed_write,
            "applied_writes": self.applied_writes,
        }


class InUse(FleetError):
    code = "in_use"
