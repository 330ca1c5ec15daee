"""Sensu Go entity registry: entity mapping, credentials and the API client."""
