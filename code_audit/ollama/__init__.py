"""
Ollama integration: HTTP client, model selection and prompts.
"""
