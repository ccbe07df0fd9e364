"""
Domain modules of the lead workflow.

Routers call `leads.commands.LeadCommands`; modules reach storage only
through `leadhub.repositories`.
"""
