"""Domain entities the attempt engine reads and updates."""
