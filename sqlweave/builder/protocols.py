from typing import TYPE_CHECKING, Any, Optional, Protocol, Union

if TYPE_CHECKING:
    from sqlweave.builder._base import StatementState, SubQuery
    from sqlweave.exceptions import SQLBuilderError

__all__ = ("BuilderProtocol",)


class BuilderProtocol(Protocol):
    _state: "StatementState"

    def _record_error(self, error: "Union[SQLBuilderError, str]") -> None: ...

    def _compile_subquery(self, query: "SubQuery") -> Optional[str]: ...

    def current_arg_index(self) -> int: ...

    def build(self) -> "tuple[str, list[Any]]": ...
