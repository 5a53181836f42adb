"""Conversation feature package: entities, repository, service, controller and router.

Conversations own the message history that the chat handler feeds to the LLM and
the realtime channel that takeovers and admin replies are broadcast on.
"""
