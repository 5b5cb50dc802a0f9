"""Scoutlete – conversation, team-chat and notification backend."""
