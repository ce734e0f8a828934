from turnkit.graph.conversation_graph import END, START, CompiledGraph, ConversationGraph, GraphStep

__all__ = ["END", "START", "CompiledGraph", "ConversationGraph", "GraphStep"]
