from app.ai_core.merging.kb_merger import merge_knowledge, merge_with_stats, MergeStats

__all__ = ["merge_knowledge", "merge_with_stats", "MergeStats"]
