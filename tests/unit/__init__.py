"""Unit tests for the transcription services.

Unit tests should:
- Not require external services (database, speech-to-text, OpenAI)
- Exercise services through the in-memory fakes from conftest
- Be fast to execute
"""
