"""web-archive command line interface."""
