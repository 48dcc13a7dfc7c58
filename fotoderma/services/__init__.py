"""Service layer for the FotoDerma API."""
