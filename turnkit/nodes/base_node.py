import inspect
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from turnkit.models.graph_state import GraphContext, GraphState, StateUpdate

NodeFunction = Callable[..., StateUpdate | None | Awaitable[StateUpdate | None]]


class GraphNode(ABC):
    """A single step of the conversation graph.

    A node reads the current state and execution context and returns a
    partial update. Nodes that produce output incrementally override
    ``stream`` and yield several updates; each one is applied to the state
    before the next is pulled.
    """

    name: str

    @abstractmethod
    async def execute(self, state: GraphState, context: GraphContext) -> StateUpdate:
        ...

    async def stream(self, state: GraphState, context: GraphContext) -> AsyncIterator[StateUpdate]:
        yield await self.execute(state, context)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionNode(GraphNode):
    """Wrap a plain callable as a graph node.

    The callable receives ``state`` and, if it accepts a second positional
    parameter, the ``context``. It may be sync or async and may return
    ``None`` for "no change".
    """

    def __init__(self, name: str, fn: NodeFunction):
        if not name:
            raise ValueError("Node name must be a non-empty string")
        self.name = name
        self.fn = fn
        self._wants_context = _positional_arity(fn) >= 2

    async def execute(self, state: GraphState, context: GraphContext) -> StateUpdate:
        args: tuple[Any, ...] = (state, context) if self._wants_context else (state,)
        result = self.fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result or StateUpdate()


def _positional_arity(fn: Callable[..., Any]) -> int:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 1
    count = 0
    for param in params:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return 2
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count
