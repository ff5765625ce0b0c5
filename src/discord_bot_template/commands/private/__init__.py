"""Commands registered to the admin guild only."""
