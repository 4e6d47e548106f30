"""Control Room API client.

Python client for an RPA Control Room REST API: authentication, audit
search, licensing, Bot Insight, devices, workload management, deployment,
repository and user management.
"""

__version__ = "0.1.0"
