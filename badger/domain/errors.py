"""
Errores de dominio. Cada uno es un resultado esperado y distinto; los routers
los traducen a HTTP sin mezclarlos. Un fallo inesperado de la base de datos
NO pasa por aquí: se registra y se devuelve como 500 opaco.
"""
from dataclasses import dataclass
from typing import Any, Dict, List


class BadgerError(Exception):
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(BadgerError):
    """Entrada mal formada (ids vacíos, motivo demasiado largo, fechas incoherentes...)."""
    code = "validation_error"


class NotFound(BadgerError):
    code = "not_found"


class Forbidden(BadgerError):
    code = "forbidden"


class InvalidPrecondition(BadgerError):
    """Estado de otra entidad incorrecto (p.ej. la solicitud no está 'accepted')."""
    code = "invalid_precondition"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), **self.details}


class InvalidTransition(BadgerError):
    code = "invalid_status"

    def __init__(self, current: str, message: str = ""):
        self.current = getattr(current, "value", current)
        super().__init__(message or f"Transition not allowed. Current status: {self.current}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "current_status": self.current}


class ValidationFailed(BadgerError):
    """La promoción no cumple la plantilla."""
    code = "validation_failed"

    def __init__(self, missing: List[Any]):
        super().__init__("Promotion does not meet template requirements")
        self.missing = list(missing)

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "missing": [m.to_dict() for m in self.missing]}


class InconsistentState(BadgerError):
    """La fila en BD tiene un estado cuyos metadatos no cuadran (p.ej. 'approved' sin approved_by)."""
    code = "inconsistent_state"


class InternalError(BadgerError):
    """Fallo inesperado del almacén. El detalle va al log, nunca al cliente."""
    code = "internal_error"

    def __init__(self, operation: str):
        super().__init__(f"An unexpected error occurred while running {operation}")
        self.operation = operation


@dataclass(frozen=True)
class ReservationConflict:
    """
    Resultado (no excepción) cuando la solicitud ya está reservada por otra
    promoción. owning_promotion_id es la promoción que ganó la reserva.
    """
    badge_application_id: str
    owning_promotion_id: str | None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "reservation_conflict",
            "conflict_type": "badge_already_reserved",
            "message": "Badge application is already reserved by another promotion",
            "badge_application_id": self.badge_application_id,
            "owning_promotion_id": self.owning_promotion_id,
        }
