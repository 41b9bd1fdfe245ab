"""Result type for explicit error handling (Rust-style)"""
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, TypeVar

T = TypeVar('T')
E = TypeVar('E')


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """
    Result wrapper implementing the "error as value" pattern.

    The error slot holds a typed value (usually a RelayError subclass) so
    callers can branch on its kind instead of catching exceptions.

    Examples:
        result = Result.ok(agent)
        result = Result.err(RoutingError(...))

        if result.success:
            use(result.data)
        else:
            report(result.error)

        agent = result.unwrap_or(current_agent)
    """

    success: bool
    data: Optional[T] = None
    error: Optional[E] = None
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate invariants after initialization"""
        if self.success and self.data is None:
            raise ValueError("Successful result must have data")
        if not self.success and self.error is None:
            raise ValueError("Failed result must have error")

    def with_warning(self, warning: str) -> 'Result[T, E]':
        """
        Return a copy of the result carrying an extra warning.

        Args:
            warning: Warning message to add

        Returns:
            New Result; the receiver is left unchanged
        """
        return Result(
            success=self.success,
            data=self.data,
            error=self.error,
            warnings=[*self.warnings, warning],
        )

    def unwrap(self) -> T:
        """
        Unwrap the result, raising if failed.

        A failed result whose error is an exception is re-raised as-is.

        Raises:
            The wrapped exception, or ValueError for non-exception errors
        """
        if not self.success:
            if isinstance(self.error, BaseException):
                raise self.error
            raise ValueError(f"Unwrap called on failed result: {self.error}")
        return self.data

    def unwrap_or(self, default: T) -> T:
        return self.data if self.success else default

    def unwrap_or_else(self, func: Callable[[E], T]) -> T:
        """Unwrap or compute a default from the error."""
        return self.data if self.success else func(self.error)

    def map(self, func: Callable[[T], Any]) -> 'Result[Any, E]':
        """
        Apply function to data if successful.

        Args:
            func: Function to apply to the data

        Returns:
            New Result with transformed data or the original error
        """
        if self.success:
            return Result(success=True, data=func(self.data), warnings=list(self.warnings))
        return Result(success=False, error=self.error, warnings=list(self.warnings))

    def and_then(self, func: Callable[[T], 'Result[Any, E]']) -> 'Result[Any, E]':
        """
        Chain Result-returning functions (flatMap/bind).

        Warnings from both results are merged.
        """
        if self.success:
            result = func(self.data)
            return Result(
                success=result.success,
                data=result.data,
                error=result.error,
                warnings=self.warnings + result.warnings,
            )

        return Result(success=False, error=self.error, warnings=list(self.warnings))

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success

    @classmethod
    def ok(cls, data: T) -> 'Result[T, Any]':
        return cls(success=True, data=data)

    @classmethod
    def err(cls, error: E) -> 'Result[Any, E]':
        return cls(success=False, error=error)

    def __repr__(self) -> str:
        warnings_str = f", warnings={self.warnings}" if self.warnings else ""
        if self.success:
            return f"Result.ok({self.data!r}{warnings_str})"
        return f"Result.err({self.error!r}{warnings_str})"

    def __bool__(self) -> bool:
        """Allow using Result in boolean context (checks success)"""
        return self.success
