"""
adrbot

Turns Slack threads into Architecture Decision Records in Notion.

Philosophy:
- A reaction is the only trigger; nothing is captured without one
- A failed generation never loses the thread: the prompt is saved first
- Saved prompts are recovered by hand, then promoted by the recovery sweep

Usage:
    from adrbot.common import load_config, NotionClient, SlackGateway
    from adrbot.common.schemas import DecisionRecord, CredentialTarget
    from adrbot.scribe import ReactionPipeline, DocumentWriter, RecoverySweeper
"""

__version__ = "0.1.0"
