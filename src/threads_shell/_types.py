"""Type aliases used throughout threads_shell."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from threads_shell._models import Update

Entity = dict[str, Any]
Schema = Mapping[str, Any]
QueryLike = Union[Mapping[str, Any], str, None]  # noqa: UP007
Listener = Callable[["Update"], None]
