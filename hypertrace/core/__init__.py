"""Core building blocks shared by every hypertrace layer: settings, errors, types."""
