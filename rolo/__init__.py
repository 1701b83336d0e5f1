import litellm

__version__ = "0.1.0"


# embeddings are the only litellm calls; keep them quiet and provider-tolerant
litellm.drop_params = True
litellm.suppress_debug_info = True
