"""Storage, log store, entry recording, commands, triggers and Telegram I/O."""
