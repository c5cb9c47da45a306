"""Typed reading schemas, result records and file loaders."""
