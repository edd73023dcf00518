"""Service layer: business logic kept apart from the HTTP blueprints."""
