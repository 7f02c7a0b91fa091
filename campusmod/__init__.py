"""Campus content moderation service."""
