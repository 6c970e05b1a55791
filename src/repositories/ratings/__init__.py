"""Rating stores."""
