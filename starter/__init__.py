"""
Fleet Starter - supervisor for dedicated game servers

Responsibilities:
- Launch, restart and stop locally hosted server processes
- Keep the matchmaking directory's view of the fleet fresh (heartbeats)
- Reconcile the directory listing with local intent (deregistration grace)
- Exit loudly when the directory has been unreachable for too long
- Read-only management API
"""
