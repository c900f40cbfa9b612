import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Protocol

from .email import DEFAULT_SENDER_NAME
from .schemas import Signer, SigningSession

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None: ...


@dataclass
class DeliveryReport:
    delivered: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class NotificationDispatcher:
    """Formats signing notices and hands each one to the notifier.

    Every recipient is attempted independently: an exception raised for one
    address is logged and recorded in the report, and delivery continues with
    the next one. Nothing is retried.
    """

    def __init__(self, notifier: Notifier, link_builder: Callable[[str, str], str], sign_off: str = DEFAULT_SENDER_NAME):
        self.notifier = notifier
        self.link_builder = link_builder
        self.sign_off = sign_off

    def notify_invitations(self, session: SigningSession) -> DeliveryReport:
        expires = session.expires_at.strftime("%B %d, %Y")

        def body(signer: Signer) -> str:
            link = self.link_builder(session.id, signer.email)
            return (
                f"Dear {signer.name},\n\n"
                f"{session.email_message}\n\n"
                f"Document: {session.document_name}\n\n"
                f"Please click the link below to review and sign the document:\n{link}\n\n"
                f"This signing request will expire on {expires}.\n\n"
                f"If you have any questions, please contact us.\n\n"
                f"Best regards,\n{self.sign_off}\n"
            )

        return self._deliver("invitation", session, session.signers, session.email_subject, body)

    def notify_completion(self, session: SigningSession, artifact_ref: str) -> DeliveryReport:
        def body(signer: Signer) -> str:
            return (
                f"Dear {signer.name},\n\n"
                f'The document "{session.document_name}" has been successfully completed by all parties.\n\n'
                f"You can download the signed document here: {artifact_ref}\n\n"
                f"Thank you for your cooperation.\n\n"
                f"Best regards,\n{self.sign_off}\n"
            )

        subject = f"Completed: {session.document_name}"
        return self._deliver("completion", session, session.signers, subject, body)

    def notify_decline(self, session: SigningSession, decliner_email: str, reason: str) -> DeliveryReport:
        def body(signer: Signer) -> str:
            return (
                f"Dear {signer.name},\n\n"
                f'The document "{session.document_name}" has been declined by {decliner_email}.\n\n'
                f"Reason: {reason or 'No reason given'}\n\n"
                f"Please contact us if you have any questions.\n\n"
                f"Best regards,\n{self.sign_off}\n"
            )

        others = [s for s in session.signers if s.email != decliner_email]
        subject = f"Document Declined: {session.document_name}"
        return self._deliver("decline", session, others, subject, body)

    def _deliver(
        self,
        kind: str,
        session: SigningSession,
        recipients: Iterable[Signer],
        subject: str,
        body: Callable[[Signer], str],
    ) -> DeliveryReport:
        report = DeliveryReport()
        for signer in recipients:
            try:
                self.notifier.send(signer.email, subject, body(signer))
            except Exception as exc:
                logger.warning(
                    "Failed to send %s notice for session %s to %s: %s",
                    kind, session.id, signer.email, exc,
                )
                report.failed[signer.email] = str(exc)
            else:
                report.delivered.append(signer.email)
        return report
