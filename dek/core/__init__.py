"""Core — reconciliation runtime, probes, configuration, persistence."""
