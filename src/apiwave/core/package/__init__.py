"""Package aggregate and its status state machine."""
