"""folioledger command line interface."""
