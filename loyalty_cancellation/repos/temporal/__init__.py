"""
Temporal activity wrappers and workflow proxies.

Kept import-free so that workflow code can import the proxies without
pulling Minio or httpx into the workflow sandbox. Activity classes live in
``loyalty_cancellation.repos.activities`` and are imported by the worker
only.
"""
