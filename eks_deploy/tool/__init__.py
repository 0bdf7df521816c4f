"""Command line tool for deploying, testing and tearing down the application."""
