"""Artifact ingestion: parsing raw downloads into untyped tables."""
