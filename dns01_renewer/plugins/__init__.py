"""DNS provider adapters consuming record directives."""
