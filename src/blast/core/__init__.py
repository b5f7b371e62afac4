"""Settings, errors, logging and filesystem access shared across blast."""
