"""Pure calculation libraries shared by the services and the CLI."""
