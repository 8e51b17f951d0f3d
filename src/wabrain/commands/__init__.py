"""Built-in chat commands. Each module exposes a ``PLUGIN``."""
