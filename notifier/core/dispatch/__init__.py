# notifier/core/dispatch/__init__.py
"""
Notification dispatch core.

- ``domain``: NotificationJob, JobBatch, transport results and outcomes
- ``ports``: collaborator protocols (transport, health cache, alarms, statistics)
- ``worker``: DispatchWorker: sends one batch and fans out side effects

Collaborators are injected by ``notifier.infra.runtime``; the core only
uses the shared logging and metrics helpers directly.
"""
