"""Built-in slash commands, laid out as ``<category>.<group>.<command>``."""
