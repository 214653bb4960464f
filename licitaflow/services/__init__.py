"""Domain services: schema handling and remote submission."""
