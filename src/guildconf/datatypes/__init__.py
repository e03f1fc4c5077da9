"""Data types: Discord ID wrappers and the guild settings schema."""
