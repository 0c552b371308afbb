"""Core workflow logic: money, threshold policy, state machine, coordinator."""
