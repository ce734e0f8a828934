import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from turnkit.errors import GraphAlreadyCompiled
from turnkit.models.graph_state import GraphContext, GraphState, StateUpdate
from turnkit.nodes.base_node import GraphNode
from turnkit.nodes.prepare_turn_node import PrepareTurnNode

logger = logging.getLogger(__name__)

START = "__start__"
END = "__end__"


@dataclass(frozen=True)
class GraphStep:
    """One update produced by a node, with the state after applying it."""

    node: str
    update: StateUpdate
    state: GraphState


class CompiledGraph:
    """Frozen, runnable form of a :class:`ConversationGraph`."""

    def __init__(self, nodes: Sequence[GraphNode]):
        self.nodes: tuple[GraphNode, ...] = tuple(nodes)
        names = [START, *(node.name for node in self.nodes), END]
        self.edges: tuple[tuple[str, str], ...] = tuple(zip(names, names[1:]))

    async def astream(self, state: GraphState, context: GraphContext) -> AsyncIterator[GraphStep]:
        """Run every node in order, yielding each update as soon as it is applied."""
        for node in self.nodes:
            logger.debug("Executing node %s", node.name)
            async with aclosing(node.stream(state, context)) as updates:
                async for update in updates:
                    state = state.apply(update)
                    yield GraphStep(node=node.name, update=update, state=state)

    async def ainvoke(self, state: GraphState, context: GraphContext) -> GraphState:
        """Run the graph to completion and return the final state."""
        async with aclosing(self.astream(state, context)) as steps:
            async for step in steps:
                state = step.state
        return state


class ConversationGraph:
    """Builder for the per-turn conversation graph.

    Nodes run ``prepare_turn``, then every registered feature node in
    registration order, then ``invoke_model``. Registration is closed by the
    first :meth:`compile`.
    """

    def __init__(self, invoke_model: GraphNode, *, prepare_turn: GraphNode | None = None):
        self._prepare_turn = prepare_turn or PrepareTurnNode()
        self._invoke_model = invoke_model
        self._feature_nodes: list[GraphNode] = []
        self._compiled: CompiledGraph | None = None

    @property
    def is_compiled(self) -> bool:
        return self._compiled is not None

    @property
    def node_names(self) -> list[str]:
        return [node.name for node in self._ordered_nodes()]

    def add_node(self, node: GraphNode) -> None:
        """Register a feature node.

        Raises:
            GraphAlreadyCompiled: If the graph has already been compiled.
            ValueError: If a node with the same name is already registered.
        """
        if self._compiled is not None:
            raise GraphAlreadyCompiled(node.name)
        if node.name in self.node_names:
            raise ValueError(
                f"A node named {node.name!r} is already registered. Use a unique node name."
            )
        self._feature_nodes.append(node)

    def compile(self) -> CompiledGraph:
        """Freeze the registry and return the runnable graph. Safe to call repeatedly."""
        if self._compiled is None:
            self._compiled = CompiledGraph(self._ordered_nodes())
            logger.debug("Compiled conversation graph: %s", " -> ".join(self.node_names))
        return self._compiled

    def _ordered_nodes(self) -> list[GraphNode]:
        return [self._prepare_turn, *self._feature_nodes, self._invoke_model]
