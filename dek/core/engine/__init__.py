"""Engine — requirement resolution and the Plan/Check/Apply runner."""
