"""SatScope HTTP backend."""
