from turnkit.nodes.base_node import FunctionNode, GraphNode
from turnkit.nodes.invoke_model_node import InvokeModelNode, load_messages_from_refs
from turnkit.nodes.prepare_turn_node import PrepareTurnNode

__all__ = [
    "FunctionNode",
    "GraphNode",
    "InvokeModelNode",
    "PrepareTurnNode",
    "load_messages_from_refs",
]
