"""Dashboard core: event bus, state machine and background task managers."""
