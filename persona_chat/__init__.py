"""PersonaChat: streaming conversations with AI personas."""
