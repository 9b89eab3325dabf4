"""GitHub REST and GitHub App integration."""
