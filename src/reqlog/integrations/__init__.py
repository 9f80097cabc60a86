"""Framework integrations; import the module matching the framework in use."""
