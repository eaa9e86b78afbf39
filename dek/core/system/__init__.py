"""System helpers — subprocesses, package managers, paths, durations."""
