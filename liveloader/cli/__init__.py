"""liveloader command line interface."""
