"""
Notification module.

Best-effort, fire-and-forget delivery of lead lifecycle events to live
WebSocket connections. Nothing here is durable: a recipient that is offline
simply re-reads lead/project state later.
"""
