# AI Core module

"""
AI Core Module - Turns chat batches into knowledge base updates.

Key responsibilities:
- Business recommendation extraction (extraction service call + validation)
- Identity resolution of entry keys
- Case-insensitive knowledge base merging
"""
