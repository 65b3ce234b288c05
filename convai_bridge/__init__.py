"""Telegram long-polling bridge to an ElevenLabs conversational agent."""
