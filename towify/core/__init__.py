"""Core building blocks: configuration, errors, scope rules and transitions."""
