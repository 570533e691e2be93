"""
Clients for the services the bot talks to: web pages, Ollama, ChromaDB,
plus the in-process conversation store.
"""
