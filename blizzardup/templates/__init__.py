"""Bundled CloudFormation templates (opaque to the apply workflow)."""
