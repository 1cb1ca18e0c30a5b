"""
Per-request worker processes.

Responsibilities:
- Define the messages exchanged between the parent and a worker.
- Run the recommendation pipeline for one request inside a child process.
- Enforce the wall-clock budget by terminating the child.
"""
