"""Generative model access: Gemini client, prompts and error mapping."""
