"""Map session lifecycle: memory profile, session state machine, view
state, session registry and host callbacks."""
