"""
Inference package.

- `from inference.backend import InferenceBackend` (protocol)
- `from inference.http_client import HttpInferenceClient` (remote /detect service)
"""
