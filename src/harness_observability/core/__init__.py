"""Pure domain logic: models, configuration, encoders and templates."""
