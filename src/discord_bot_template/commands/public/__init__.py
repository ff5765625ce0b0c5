"""Commands available in every guild."""
