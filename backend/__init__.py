"""
Backend package for the $ave+ API.

A FastAPI service over a pluggable data store, job queue, cache and object
storage, with a worker process that drains the transaction alert queue.
"""
