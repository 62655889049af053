"""Format parsers that produce FeatureCollections."""
