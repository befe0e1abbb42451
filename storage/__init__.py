"""Storage backends implementing the SpotRepository protocol."""
