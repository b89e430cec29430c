"""Service layer: catalogue reads/seeding and instance configuration persistence."""
