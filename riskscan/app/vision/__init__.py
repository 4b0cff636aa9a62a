"""
Vision analysis adapters.

The IP detector and the brand safety analyzer share one executor, one
tolerant response parser and one sub-scoring rule. They differ only in
prompt, response schema and the extra views they derive (platform
compliance for brand safety).
"""
