"""
Event catalog: which jobs each application event fans out to, and the shape
of the data the event must carry.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventPayload(BaseModel):
    """
    Base for event payloads. Producers send camelCase keys (`messageId`);
    snake_case field names are accepted too. Unknown keys are ignored.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilePreviewGenerate(EventPayload):
    file_id: int


class ConversationEmbeddingCreate(EventPayload):
    conversation_slug: str


class MessagePayload(EventPayload):
    message_id: int


class AutoResponseCreate(EventPayload):
    message_id: int
    tools: dict[str, dict[str, Any]] | None = None


class BulkUpdateConversations(EventPayload):
    user_id: str
    # Either explicit conversation ids or a search filter
    conversation_filter: list[int] | dict[str, Any]
    status: Literal["open", "closed", "spam"] | None = None
    assigned_to_id: str | None = None
    assigned_to_ai: bool | None = None
    message: str | None = None


class ConversationPayload(EventPayload):
    conversation_id: int


class GmailWebhookReceived(EventPayload):
    body: Any = None
    headers: Any = None


class FaqEmbeddingCreate(EventPayload):
    faq_id: int


class GmailImportRecentThreads(EventPayload):
    gmail_support_email_id: int


class GmailImportThreads(EventPayload):
    gmail_support_email_id: int
    from_inclusive: datetime
    to_inclusive: datetime


class EmptyPayload(EventPayload):
    pass


class WebsiteCrawlCreate(EventPayload):
    website_id: int
    crawl_id: int


class MessageFlaggedBad(EventPayload):
    message_id: int
    reason: str | None = Field(...)


class SlackAgentMessage(EventPayload):
    slack_user_id: str | None = Field(...)
    status_message_ts: str
    agent_thread_id: int
    confirmed_reply_text: str | None = None
    confirmed_knowledge_base_entry: str | None = None


@dataclass(frozen=True)
class EventDefinition:
    payload_model: type[EventPayload]
    job_types: tuple[str, ...]


EVENTS: dict[str, EventDefinition] = {
    "files/preview.generate": EventDefinition(
        FilePreviewGenerate, ("generate_file_preview",)
    ),
    "conversations/embedding.create": EventDefinition(
        ConversationEmbeddingCreate, ("embedding_conversation",)
    ),
    "conversations/message.created": EventDefinition(
        MessagePayload,
        (
            "index_conversation_message",
            "generate_conversation_summary_embeddings",
            "merge_similar_conversations",
            "publish_new_message_event",
            "notify_vip_message",
            "categorize_conversation_to_issue_group",
        ),
    ),
    "conversations/email.enqueued": EventDefinition(
        MessagePayload, ("post_email_to_gmail",)
    ),
    "conversations/auto-response.create": EventDefinition(
        AutoResponseCreate, ("handle_auto_response",)
    ),
    "conversations/bulk-update": EventDefinition(
        BulkUpdateConversations, ("bulk_update_conversations",)
    ),
    "conversations/update-suggested-actions": EventDefinition(
        ConversationPayload, ("update_suggested_actions",)
    ),
    "gmail/webhook.received": EventDefinition(
        GmailWebhookReceived, ("handle_gmail_webhook_event",)
    ),
    "faqs/embedding.create": EventDefinition(FaqEmbeddingCreate, ("embedding_faq",)),
    "gmail/import-recent-threads": EventDefinition(
        GmailImportRecentThreads, ("import_recent_gmail_threads",)
    ),
    "gmail/import-gmail-threads": EventDefinition(
        GmailImportThreads, ("import_gmail_threads",)
    ),
    "reports/weekly": EventDefinition(
        EmptyPayload, ("generate_mailbox_weekly_report",)
    ),
    "reports/daily": EventDefinition(EmptyPayload, ("generate_mailbox_daily_report",)),
    "websites/crawl.create": EventDefinition(WebsiteCrawlCreate, ("crawl_website",)),
    "messages/flagged.bad": EventDefinition(
        MessageFlaggedBad, ("suggest_knowledge_bank_changes",)
    ),
    "conversations/auto-close.check": EventDefinition(
        EmptyPayload, ("close_inactive_conversations",)
    ),
    "conversations/auto-close.process-mailbox": EventDefinition(
        EmptyPayload, ("close_inactive_conversations_for_mailbox",)
    ),
    "conversations/human-support-requested": EventDefinition(
        ConversationPayload,
        ("auto_assign_conversation", "publish_request_human_support"),
    ),
    "slack/agent.message": EventDefinition(
        SlackAgentMessage, ("handle_slack_agent_message",)
    ),
}


def event_job_types(events: dict[str, EventDefinition] = EVENTS) -> set[str]:
    """Every job type some event can enqueue."""
    return {job_type for event in events.values() for job_type in event.job_types}
