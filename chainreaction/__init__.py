"""Chain Reaction: two-player cascade board game over a shared room record."""
