"""HTTP adapter for the approval workflow."""
