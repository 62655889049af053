"""Serializers for FeatureCollections."""
