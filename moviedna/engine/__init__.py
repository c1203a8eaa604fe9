"""Pipeline stages: collect, pre-filter, enrich, featurize, score, rank."""
