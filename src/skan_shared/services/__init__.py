"""Business services used by the API blueprints."""
