from contextvars import ContextVar, Token
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from customers.models import Clinic


_current_clinic: ContextVar[Optional["Clinic"]] = ContextVar(
    "current_clinic", default=None
)


def get_current_clinic() -> Optional["Clinic"]:
    return _current_clinic.get()


def set_current_clinic(clinic: Optional["Clinic"]) -> Token:
    return _current_clinic.set(clinic)


def reset_current_clinic(token: Token) -> None:
    _current_clinic.reset(token)
