"""oasguard: structural and style validation for OpenAPI and Swagger documents."""

__version__ = "0.1.0"
