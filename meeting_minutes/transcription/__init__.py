"""Transcription job pipeline."""
