import re

from pydantic import BaseModel, Field

MAX_SUBJECT_LENGTH = 200
MAX_BODY_LENGTH = 2000
MAX_TAG_LENGTH = 50
TAG_DISALLOWED_RE = re.compile(r"[^a-zA-Z0-9\-._:/]")


class OutgoingEmail(BaseModel):
    """A plain-text message ready to hand to a provider."""

    to: str
    subject: str
    body: str
    sender_name: str
    sender_email: str | None = None
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def compose(
        cls,
        to: str,
        subject: str,
        body: str,
        sender_name: str,
        sender_email: str | None = None,
        tags: str | list[str] | None = None,
    ) -> "OutgoingEmail":
        """Build a message with header-safe subject, bounded body, and clean tags."""
        if isinstance(tags, str):
            tags = [tags]
        clean_tags = [TAG_DISALLOWED_RE.sub("", str(tag))[:MAX_TAG_LENGTH] for tag in tags or []]
        return cls(
            to=to,
            subject=re.sub(r"[\r\n]", "", str(subject))[:MAX_SUBJECT_LENGTH],
            body=str(body)[:MAX_BODY_LENGTH],
            sender_name=sender_name,
            sender_email=sender_email,
            tags=[tag for tag in clean_tags if tag],
        )
