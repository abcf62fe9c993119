# marketplace/domain/result.py
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar, Union

from marketplace.domain.errors import ErrorKind, MarketplaceError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, error: MarketplaceError) -> "Err":
        return cls(kind=error.kind, message=error.message, details=dict(error.details))


Result = Union[Ok[T], Err]


def capture(fn: Callable[..., T], *args, **kwargs) -> Result:
    """Runs a use case and folds domain errors into an Err."""
    try:
        return Ok(fn(*args, **kwargs))
    except MarketplaceError as e:
        return Err.from_error(e)
