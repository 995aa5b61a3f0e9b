"""PromptMinder authentication, sessions and admin authorization."""
