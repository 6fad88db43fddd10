"""
Question answering over a user's documents.

Provides:
- Lexical relevance ranking of document chunks
- Bounded prompt composition
- Completion via Gemini or Ollama
- Heuristic answer confidence
"""
