from turnkit.models.graph_state import GraphContext, GraphState, StateUpdate
from turnkit.nodes.base_node import GraphNode


class PrepareTurnNode(GraphNode):
    """Entry node of every turn. Clears any response left in the state."""

    name = "prepare_turn"

    async def execute(self, state: GraphState, context: GraphContext) -> StateUpdate:
        return {"response_chunk": None}
