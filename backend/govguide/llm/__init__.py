"""
Model endpoint package

One OpenAI-compatible endpoint (GitHub Models by default) serves both
embeddings and chat completions. A single CredentialState per process holds
the primary/backup key pair; rotation applies to every client sharing it.

Public API::

    from govguide.llm import CompletionClient, CredentialState

    credentials = CredentialState.from_settings(settings)
    completion  = CompletionClient.from_settings(settings, credentials)
    text        = await completion.complete(messages)
"""

from govguide.llm.completion import CompletionClient
from govguide.llm.credentials import CredentialState

__all__ = ["CompletionClient", "CredentialState"]
