"""Activity tracking: timers, state machine, scanner, registry."""
