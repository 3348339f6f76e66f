from govguide.rag.hybrid_retriever import HybridRetriever
from govguide.rag.pipeline import ChatAnswer, ChatOrchestrator, QueryState

__all__ = ["HybridRetriever", "ChatAnswer", "ChatOrchestrator", "QueryState"]
