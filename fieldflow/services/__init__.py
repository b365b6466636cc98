"""Service layer: one module per store plus the cross-store workflows."""
