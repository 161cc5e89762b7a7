"""Platform configuration and test standard registry."""
