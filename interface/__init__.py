"""Host-facing surfaces: REST API and command line."""
